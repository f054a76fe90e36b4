"""
Provider-agnostic LLM factory.

Switch LLM provider by changing env vars, no code changes needed:
  LLM_PROVIDER=openai | gemini | groq
  LLM_MODEL=gpt-4 | gemini-2.0-flash | llama-3.1-70b-versatile
  EMBEDDING_PROVIDER=openai | gemini
  LLM_API_KEY=your-key
"""

from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel

from ragdesk.config import get_settings


def create_llm() -> BaseChatModel:
    """Create an LLM instance based on env configuration.

    Returns:
        BaseChatModel: A LangChain-compatible chat model.

    Raises:
        ValueError: If provider is not supported.
    """
    settings = get_settings()

    match settings.LLM_PROVIDER:
        case "openai":
            from langchain_openai import ChatOpenAI

            return ChatOpenAI(
                model=settings.LLM_MODEL,
                api_key=settings.LLM_API_KEY,
                temperature=settings.LLM_TEMPERATURE,
            )

        case "gemini":
            from langchain_google_genai import ChatGoogleGenerativeAI

            return ChatGoogleGenerativeAI(
                model=settings.LLM_MODEL,
                google_api_key=settings.LLM_API_KEY,
                temperature=settings.LLM_TEMPERATURE,
            )

        case "groq":
            from langchain_groq import ChatGroq

            return ChatGroq(
                model=settings.LLM_MODEL,
                api_key=settings.LLM_API_KEY,
                temperature=settings.LLM_TEMPERATURE,
            )

        case _:
            raise ValueError(
                f"Unknown LLM provider: '{settings.LLM_PROVIDER}'. "
                f"Supported: openai, gemini, groq"
            )


def create_embeddings() -> Embeddings:
    """Create an embedding model based on env configuration.

    Provider-side retries are disabled; the Embedder owns the retry policy.
    """
    settings = get_settings()

    match settings.EMBEDDING_PROVIDER:
        case "openai":
            from langchain_openai import OpenAIEmbeddings

            kwargs = {}
            # Only the text-embedding-3 family accepts a target dimension.
            if settings.EMBEDDING_MODEL.startswith("text-embedding-3"):
                kwargs["dimensions"] = settings.EMBEDDING_DIMENSIONS
            return OpenAIEmbeddings(
                model=settings.EMBEDDING_MODEL,
                api_key=settings.LLM_API_KEY,
                max_retries=0,
                **kwargs,
            )

        case "gemini":
            from langchain_google_genai import GoogleGenerativeAIEmbeddings

            return GoogleGenerativeAIEmbeddings(
                model=f"models/{settings.EMBEDDING_MODEL}",
                google_api_key=settings.LLM_API_KEY,
            )

        case _:
            raise ValueError(
                f"Unknown embedding provider: '{settings.EMBEDDING_PROVIDER}'. "
                f"Supported: openai, gemini"
            )
