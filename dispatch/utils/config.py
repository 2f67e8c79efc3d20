from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dispatch.providers.base import ProviderSpec


class DispatchConfig(BaseSettings):
    """Provider credentials, models and retry tuning for the dispatcher.

    Credentials and model ids use the provider's conventional variable names
    (GEMINI_API_KEY, GROQ_MODEL, ...); tuning knobs use the DISPATCH_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    gemini_api_key: str = Field(default="", validation_alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-flash-latest", validation_alias="GEMINI_MODEL")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        validation_alias="GEMINI_BASE_URL",
    )

    groq_api_key: str = Field(default="", validation_alias="GROQ_API_KEY")
    groq_model: str = Field(default="llama-3.1-8b-instant", validation_alias="GROQ_MODEL")

    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", validation_alias="OPENAI_MODEL")
    openai_base_url: str = Field(default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL")

    openrouter_api_key: str = Field(default="", validation_alias="OPENROUTER_API_KEY")
    openrouter_model: str = Field(default="anthropic/claude-3-haiku", validation_alias="OPENROUTER_MODEL")

    provider_order: str = Field(default="gemini,groq,openai,openrouter")
    request_timeout: float = Field(default=60.0, gt=0)
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_jitter: float = Field(default=1.0, ge=0)

    def ordered_names(self) -> List[str]:
        return [name.strip().lower() for name in self.provider_order.split(",") if name.strip()]

    def provider_specs(self) -> List[ProviderSpec]:
        """Build the static provider list; position in provider_order is priority."""
        known = {
            "gemini": ProviderSpec(
                name="gemini",
                credential=self.gemini_api_key,
                model=self.gemini_model,
                base_url=self.gemini_base_url,
            ),
            "groq": ProviderSpec(
                name="groq",
                credential=self.groq_api_key,
                model=self.groq_model,
                base_url="https://api.groq.com/openai/v1",
            ),
            "openai": ProviderSpec(
                name="openai",
                credential=self.openai_api_key,
                model=self.openai_model,
                base_url=self.openai_base_url,
            ),
            "openrouter": ProviderSpec(
                name="openrouter",
                credential=self.openrouter_api_key,
                model=self.openrouter_model,
                base_url="https://openrouter.ai/api/v1",
            ),
        }

        specs = []
        for priority, name in enumerate(self.ordered_names()):
            spec = known.get(name)
            if spec is None:
                continue
            spec.priority = priority
            spec.timeout = self.request_timeout
            specs.append(spec)
        return specs


def get_dispatch_config() -> DispatchConfig:
    """Load dispatcher config from the environment."""
    return DispatchConfig()
