"""
Application settings and configuration

Uses pydantic-settings for type-safe configuration via environment variables.
All settings use TYPFENCE_ prefix (e.g., TYPFENCE_HIDELINES="% ").

Settings can also be loaded from a .env file or a typfence.yaml file in the
working directory. The settings object is frozen: the compiler receives one
value at construction and never reads ambient state afterwards.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)


DEFAULT_PREAMBLE = "#set page(height: auto, width: 400pt, margin: 0.5cm)\n"

DEFAULT_EMBED_TEMPLATE = (
    '<div style="text-align: center; padding: 0.5em; background: var(--quote-bg);">'
    '<img align="middle" src="{src}" alt="Rendered image" '
    'style="background: white; max-width: 500pt; width: 100%;">'
    "</div>"
)


class AppSettings(BaseSettings):
    """
    Application configuration via environment variables.

    Environment variables use TYPFENCE_ prefix.

    Examples:
        TYPFENCE_HIDELINES="% "
        TYPFENCE_ENGINE_EXECUTABLE=/opt/typst/bin/typst
        TYPFENCE_FAIL_FAST=true
        TYPFENCE_ENGINE_ARGS='["--ppi", "144"]'
    """

    model_config = SettingsConfigDict(
        env_prefix="TYPFENCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="typfence.yaml",
        case_sensitive=False,
        frozen=True,
    )

    # Directive behaviour
    hidelines: str = Field(
        default="",
        description="Default hidden-line prefix (empty disables hiding unless a block overrides it)",
    )

    preamble: str = Field(
        default=DEFAULT_PREAMBLE,
        description="Source fragment prepended to `typ` blocks before compilation",
    )

    render: bool = Field(
        default=True,
        description="Compile typ blocks; when false they are kept as literal fenced blocks",
    )

    warn_not_specified: bool = Field(
        default=False,
        description="Log a warning for fenced blocks without a language tag",
    )

    # Engine invocation
    engine_executable: str = Field(
        default="typst",
        description="Typst executable (name on PATH or absolute path)",
    )

    engine_args: List[str] = Field(
        default_factory=list,
        description="Extra arguments appended to every `typst compile` call",
    )

    engine_root: Optional[str] = Field(
        default=None,
        description="Project root passed to typst via --root",
    )

    font_path: Optional[str] = Field(
        default=None,
        description="Additional font directory passed to typst via --font-path",
    )

    engine_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Seconds before a single engine invocation is abandoned",
    )

    timeout_retries: int = Field(
        default=1,
        ge=0,
        description="How many times a timed-out block is resubmitted",
    )

    output_format: str = Field(
        default="svg",
        description="Artifact format requested from the engine (svg or png)",
    )

    # Pipeline
    max_workers: Optional[int] = Field(
        default=None,
        ge=1,
        description="Worker pool size for concurrent renders (defaults to cpu count)",
    )

    fail_fast: bool = Field(
        default=False,
        description="Abort the document pass on the first render failure",
    )

    cache_dir: Optional[str] = Field(
        default=None,
        description="Directory for the persistent artifact cache (memory only when unset)",
    )

    # Output
    image_dir: str = Field(
        default="typst-img",
        description="Directory (relative to the document) that receives rendered artifacts",
    )

    embed_template: str = Field(
        default=DEFAULT_EMBED_TEMPLATE,
        description="HTML emitted per rendered page; {src} is the artifact path",
    )

    show_source: bool = Field(
        default=True,
        description="Emit the highlighted display source above rendered images",
    )

    highlight_language: str = Field(
        default="typst",
        description="Pygments lexer name used for the displayed source",
    )

    pygments_style: str = Field(
        default="solarized-dark",
        description="Pygments style used for inline-styled highlighting",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Constructor arguments win, then environment, .env, and typfence.yaml last."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def overrides_apply(self, overrides: Mapping[str, Any]) -> "AppSettings":
        """
        Return a new settings value with the given overrides applied.

        Keys may use kebab-case (as in book.toml) or snake_case. Unknown keys
        and None values are ignored so callers can pass raw CLI namespaces or
        preprocessor tables.

        Example:
            >>> AppSettings().overrides_apply({"fail-fast": True}).fail_fast
            True
        """
        known = type(self).model_fields
        clean: Dict[str, Any] = {}
        for key, value in overrides.items():
            name = key.replace("-", "_")
            if name in known and value is not None:
                clean[name] = value

        if not clean:
            return self

        return type(self)(**{**self.model_dump(), **clean})


# Singleton instance - import this in your code
appsettings = AppSettings()
