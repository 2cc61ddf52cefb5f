"""Application configuration for createhome."""

from pathlib import Path
from typing import Annotated, Any, Self

import yaml
from pydantic import (
    AliasChoices,
    BeforeValidator,
    Field,
    SecretStr,
    field_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from safir.logging import LogLevel, Profile, configure_logging

from .constants import (
    DEFAULT_DIRECTORY_MODE,
    DEFAULT_HOME_MODE,
    ENV_PREFIX,
    ROOT_LOGGER,
)
from .models import HomeSpec

__all__ = ["Config", "FileMode"]


def _parse_mode(value: Any) -> Any:
    # YAML 1.1 already turns a bare 0711 into an integer, but quoted modes
    # and environment variables arrive as strings.
    if isinstance(value, str):
        text = value.strip().lower().removeprefix("0o")
        try:
            value = int(text, 8)
        except ValueError as exc:
            raise ValueError(f"{value!r} is not an octal mode") from exc
    # Permission bits only.  This also catches unquoted YAML modes like 711,
    # which are read as decimal.
    if isinstance(value, int) and not 0 <= value <= 0o777:
        raise ValueError(
            f"Mode {value:o} (octal) out of range, write modes as '0700'"
        )
    return value


FileMode = Annotated[int, BeforeValidator(_parse_mode)]
"""Permission bits, given as an integer or an octal string."""


class EnvFirstSettings(BaseSettings):
    """Base class for Pydantic settings with environment overrides.

    Classes that inherit from this base class will prioritize environment
    variables over arguments to the class constructor.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX, extra="forbid", validate_by_name=True
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Override the sources of settings.

        Deactivate :file:`.env` and secret file support.  Allow environment
        variables to override init parameters, since init parameters come
        from the YAML configuration file and we want environment variables
        to take precedence.
        """
        return (env_settings, init_settings)


class Config(EnvFirstSettings):
    """Configuration for home directory provisioning."""

    enabled: Annotated[
        bool,
        Field(
            title="Whether to create home directories on demand",
            description=(
                "If False, provisioning succeeds without touching the"
                " filesystem."
            ),
        ),
    ] = False

    home_mode: Annotated[
        FileMode,
        Field(
            title="Mode of the home directory itself",
            validation_alias=AliasChoices(
                ENV_PREFIX + "HOME_MODE", "homeMode"
            ),
        ),
    ] = DEFAULT_HOME_MODE

    directory_mode: Annotated[
        FileMode,
        Field(
            title="Mode of created parent directories",
            description=(
                "Parent directories created along the way are owned by"
                " root and get this mode."
            ),
            validation_alias=AliasChoices(
                ENV_PREFIX + "DIRECTORY_MODE", "directoryMode"
            ),
        ),
    ] = DEFAULT_DIRECTORY_MODE

    skeleton_path: Annotated[
        Path | None,
        Field(
            title="Skeleton directory",
            description=(
                "Directory whose contents are copied into each newly"
                " created home directory, like /etc/skel. If not set,"
                " new home directories are left empty."
            ),
            validation_alias=AliasChoices(
                ENV_PREFIX + "SKELETON_PATH", "skeletonPath"
            ),
        ),
    ] = None

    debug: Annotated[
        bool,
        Field(
            title="Show debug output and log style",
            description=(
                "If True, then log level will be set to debug and will"
                " non-structured, human-readable output."
            ),
        ),
    ] = False

    log_profile: Annotated[
        Profile,
        Field(
            title="Logging profile",
            validation_alias=AliasChoices(
                ENV_PREFIX + "LOG_PROFILE", "logProfile"
            ),
        ),
    ] = Profile.production

    log_level: Annotated[
        LogLevel,
        Field(
            title="Log level",
            validation_alias=AliasChoices(
                ENV_PREFIX + "LOG_LEVEL", "logLevel"
            ),
        ),
    ] = LogLevel.INFO

    add_timestamp: Annotated[
        bool,
        Field(
            title="Add timestamp to log lines",
            validation_alias=AliasChoices(
                ENV_PREFIX + "ADD_TIMESTAMP", "addTimestamp"
            ),
        ),
    ] = False

    alert_hook: Annotated[
        SecretStr | None,
        Field(
            title="Slack webhook URL used for sending alerts",
            description=(
                "An https URL, which should be considered secret."
                " If not set or set to `None`, this feature will be disabled."
            ),
            validation_alias=AliasChoices(
                ENV_PREFIX + "ALERT_HOOK", "alertHook"
            ),
        ),
    ] = None

    @field_validator("skeleton_path")
    @classmethod
    def _validate_skeleton_path(cls, v: Path | None) -> Path | None:
        if v is not None and not v.is_absolute():
            raise ValueError(f"Skeleton path {v} must be absolute")
        return v

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Construct the configuration from a YAML file.

        Parameters
        ----------
        path
            Path to the configuration file in YAML.

        Returns
        -------
        Config
            The corresponding configuration.
        """
        with path.open("r") as f:
            config = cls.model_validate(yaml.safe_load(f) or {})
        config.configure_logging()
        return config

    def home_spec(self, home: Path, uid: int, gid: int) -> HomeSpec:
        """Combine the configured policy with one user's identity.

        Raises
        ------
        ValueError
            Raised if the UID, GID, or home path is not acceptable.
        """
        return HomeSpec(
            path=home,
            uid=uid,
            gid=gid,
            directory_mode=self.directory_mode,
            home_mode=self.home_mode,
            skeleton=self.skeleton_path,
        )

    def configure_logging(self) -> None:
        """Configure logging based on the createhome configuration."""
        if self.debug:
            log_level = LogLevel.DEBUG
            log_profile = Profile.development
        else:
            log_level = self.log_level
            log_profile = self.log_profile

        configure_logging(
            profile=log_profile,
            log_level=log_level,
            add_timestamp=self.add_timestamp,
            name=ROOT_LOGGER,
        )
