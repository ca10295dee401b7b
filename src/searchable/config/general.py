import warnings
from pathlib import Path
from typing import Annotated, ClassVar, Literal, override

from pydantic import AfterValidator, BaseModel, Field, SecretStr
from pydantic_file_secrets import FileSecretsSettingsSource, SettingsConfigDict
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    YamlConfigSettingsSource,
)

from searchable.types.general import LogLevel
from searchable.utils.general import CommentedSettings

# Filter warnings about secrets because they're optional
warnings.filterwarnings(
    action="ignore", message='directory "/run/secrets" does not exist'
)
warnings.filterwarnings(
    action="ignore", message='directory "config/secrets" does not exist'
)


class LogSettings(BaseModel):
    """Settings for log handling."""

    log_to_file: Annotated[
        bool, Field(description="Also write plain and JSON logs under `directory`.")
    ] = False
    directory: Annotated[Path, Field(description="Directory for log files.")] = Path(
        "logs"
    )
    rotation: Annotated[
        str, Field(description="Loguru rotation condition for log files.")
    ] = "monthly"
    retention: Annotated[
        int, Field(description="Number of rotated log files to keep.")
    ] = 3


class ElasticSearchSettings(BaseModel):
    """Settings for the Elasticsearch transport."""

    scheme: Literal["http", "https"] = "http"
    host: str = "localhost"
    port: int = 9200
    username: str | None = None
    password: SecretStr | None = None
    verify_certs: bool = True
    query_timeout: Annotated[
        int,
        Field(
            description="Time in seconds before a Elasticsearch request should time out."
        ),
    ] = 30
    connect_retries: Annotated[
        int,
        Field(description="Number of retries before declaring a connection failure."),
    ] = 5
    index_name: Annotated[
        str, Field(description="Index used when a builder or synchronizer names none.")
    ] = "documents"
    refresh_on_bulk: Annotated[
        Literal["true", "false", "wait_for"],
        Field(description="Refresh policy passed to bulk requests."),
    ] = "false"

    @property
    def url(self) -> str:
        """Get the complete base URL of the cluster."""
        return f"{self.scheme}://{self.host}:{self.port}"


def uppercase(value: str) -> str:
    """Make a string uppercase."""
    return value.upper()


class GeneralConfig(CommentedSettings):
    """General library config."""

    log_level: Annotated[
        LogLevel,
        AfterValidator(uppercase),
    ] = Field(
        default="INFO",
        description="Level of library logs to print/keep.",
    )
    log: LogSettings = LogSettings()
    elasticsearch: ElasticSearchSettings = ElasticSearchSettings()

    # Weird override happening here, see https://github.com/makukha/pydantic-file-secrets for an explanation
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(  # pyright:ignore[reportIncompatibleVariableOverride] This is the intended pattern
        case_sensitive=False,
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="config/config.yaml",
        yaml_file_encoding="utf-8",
        secrets_dir=["config/secrets", "/run/secrets"],
        secrets_nested_delimiter="__",
    )

    @classmethod
    @override
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Ensure proper setting priority order."""
        return (
            env_settings,
            FileSecretsSettingsSource(file_secret_settings),
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            init_settings,
        )


CONFIG = GeneralConfig()
