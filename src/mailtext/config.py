from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from mailtext.services.options import ConversionOptions, HeadingStyle
from mailtext.services.quote_marker import QUOTED_NOTICE


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    log_level: str = "INFO"

    graph_tenant_id: str = ""
    graph_client_id: str = ""
    graph_client_secret: str = ""
    graph_default_mailbox: str = ""

    api_retry_max_attempts: int = 3
    api_retry_base_delay_seconds: float = 1.0
    api_retry_max_delay_seconds: float = 8.0

    convert_wordwrap: int = 80
    convert_heading_style: HeadingStyle = "linebreak"
    convert_tables: bool = True
    convert_preserve_href_links: bool = True

    hide_quoted_content: bool = False
    quoted_content_notice: str = QUOTED_NOTICE

    def conversion_options(self) -> ConversionOptions:
        return ConversionOptions(
            wordwrap=self.convert_wordwrap,
            heading_style=self.convert_heading_style,
            tables=self.convert_tables,
            preserve_href_links=self.convert_preserve_href_links,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
