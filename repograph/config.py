from pathlib import Path
from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Embedded Store Configuration
    kuzu_database_path: str = ":memory:"
    node_table_name: str = "CodeNode"
    edge_table_name: str = "CodeRelation"
    csv_delimiter: str = ","

    # Ingestion Configuration
    max_workers: int = 4
    max_file_size: int = 1024 * 1024
    max_content_chars: int = 20000
    resolution_tie_break: str = "same_file_first"
    ignored_dirs: str = (
        ".git,.svn,.hg,node_modules,__pycache__,.venv,venv,.idea,.vscode,"
        ".pytest_cache,.mypy_cache,dist,build,coverage,.next,artifacts,cache,out"
    )
    ignored_extensions: str = (
        ".png,.jpg,.jpeg,.gif,.bmp,.ico,.svg,.webp,.pdf,.zip,.gz,.tar,.tgz,.7z,"
        ".jar,.class,.exe,.dll,.so,.dylib,.o,.a,.woff,.woff2,.ttf,.eot,.mp3,.mp4,"
        ".mov,.wasm,.lock,.map,.min.js"
    )

    # MCP Configuration
    mcp_host: str = "localhost"
    mcp_port: int = 8000

    # Logging Configuration
    log_level: str = "INFO"
    log_file: str = "logs/app.log"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def ignored_dirs_list(self) -> List[str]:
        """Get ignored directory names as a list."""
        return [name.strip() for name in self.ignored_dirs.split(",") if name.strip()]

    @property
    def ignored_extensions_list(self) -> List[str]:
        """Get ignored file extensions as a list."""
        return [ext.strip().lower() for ext in self.ignored_extensions.split(",") if ext.strip()]

    @property
    def log_dir(self) -> Path:
        """Get log directory path."""
        return Path(self.log_file).parent

    def ensure_directories(self):
        """Ensure necessary directories exist."""
        self.log_dir.mkdir(parents=True, exist_ok=True)


settings = Settings()
settings.ensure_directories()
