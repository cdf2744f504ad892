from __future__ import annotations

import configparser
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_HOST_BASE = "s3.amazonaws.com"
DEFAULT_HOST_BUCKET = "%(bucket)s.s3.amazonaws.com"
DEFAULT_REGION = "us-east-1"
DEFAULT_SIZE_DEADLINE = 1.0
DEFAULT_DATE_DEADLINE = 2.0


@dataclass(frozen=True)
class S3Config:
    access_key: str
    secret_key: str
    host_base: str = DEFAULT_HOST_BASE
    host_bucket: str = DEFAULT_HOST_BUCKET
    use_https: bool = True
    signature_v2: bool = False
    region: str = DEFAULT_REGION

    @property
    def endpoint_url(self) -> str:
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.host_base}"


@dataclass(frozen=True)
class Settings:
    size_deadline: float = DEFAULT_SIZE_DEADLINE
    date_deadline: float = DEFAULT_DATE_DEADLINE
    download_dir: str = "."
    upload_start_dir: str = "."


def config_base_dir() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        base = Path(config_home).expanduser()
    else:
        base = Path.home() / ".config"
    return base / "s4"


def default_log_path() -> Path:
    return config_base_dir() / "s4.log"


def candidate_config_paths() -> list[Path]:
    return [
        Path(".s3cfg"),
        Path.home() / ".s3cfg",
        Path("/etc/s3cfg"),
    ]


def find_config_path() -> Optional[Path]:
    for path in candidate_config_paths():
        if path.is_file():
            return path
    return None


def _parse_bool(value: str, default: bool) -> bool:
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def load_s3_config(path: Optional[Path] = None) -> S3Config:
    if path is None:
        path = find_config_path()
        if path is None:
            raise ConfigError(".s3cfg file not found in any of the standard locations")
    parser = configparser.ConfigParser(interpolation=None)
    try:
        with open(path, encoding="utf-8") as handle:
            parser.read_file(handle)
    except (OSError, configparser.Error) as exc:
        raise ConfigError(f"failed to load {path}: {exc}") from exc
    if not parser.has_section("default"):
        raise ConfigError(f"{path} has no [default] section")
    section = parser["default"]
    access_key = section.get("access_key", "").strip()
    secret_key = section.get("secret_key", "").strip()
    if not access_key or not secret_key:
        raise ConfigError("access_key and secret_key must be specified in .s3cfg")
    config = S3Config(
        access_key=access_key,
        secret_key=secret_key,
        host_base=section.get("host_base", "").strip() or DEFAULT_HOST_BASE,
        host_bucket=section.get("host_bucket", "").strip() or DEFAULT_HOST_BUCKET,
        use_https=_parse_bool(section.get("use_https", ""), True),
        signature_v2=_parse_bool(section.get("signature_v2", ""), False),
        region=section.get("bucket_location", "").strip() or DEFAULT_REGION,
    )
    logger.info("Loaded S3 configuration from %s (endpoint %s)", path, config.endpoint_url)
    return config


def save_s3_config(config: S3Config, path: Path) -> None:
    parser = configparser.ConfigParser(interpolation=None)
    parser["default"] = {
        "access_key": config.access_key,
        "secret_key": config.secret_key,
        "host_base": config.host_base,
        "host_bucket": config.host_bucket,
        "use_https": "True" if config.use_https else "False",
        "signature_v2": "True" if config.signature_v2 else "False",
        "bucket_location": config.region,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(f"{path.name}.tmp")
    with open(temp_path, "w", encoding="utf-8") as handle:
        parser.write(handle)
    temp_path.replace(path)
    logger.info("Saved S3 configuration to %s", path)


def interactive_setup(
    read: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> S3Config:
    """Walk the user through creating an .s3cfg file.

    ``read`` and ``write`` default to ``input`` and ``print``. Raises
    ``ConfigError`` when the user declines or gives an unusable answer.
    """

    def ask(prompt: str) -> str:
        try:
            return read(prompt).strip()
        except EOFError as exc:
            raise ConfigError("failed to read input") from exc

    write("S4 Interactive Setup")
    write("====================")
    write("")
    write("No .s3cfg configuration file found.")
    answer = ask("Would you like to create one interactively? (y/N) ").lower()
    if answer not in {"y", "yes"}:
        raise ConfigError("setup declined by user")

    write("")
    write("Common configurations:")
    write("  - AWS S3: your AWS credentials and s3.amazonaws.com")
    write("  - MinIO local: minioadmin/minioadmin123 and localhost:9000")
    write("  - Other S3-compatible: your service's endpoint and credentials")
    write("")

    access_key = ask("Access Key ID: ")
    if not access_key:
        raise ConfigError("access key cannot be empty")
    secret_key = ask("Secret Access Key: ")
    if not secret_key:
        raise ConfigError("secret key cannot be empty")
    host_base = ask(f"S3 Endpoint (default: {DEFAULT_HOST_BASE}): ") or DEFAULT_HOST_BASE
    if host_base == DEFAULT_HOST_BASE:
        host_bucket = DEFAULT_HOST_BUCKET
    else:
        host_bucket = f"{host_base}/%(bucket)s"
    region = ask(f"Region (default: {DEFAULT_REGION}): ") or DEFAULT_REGION
    use_https = "localhost" not in host_base and "127.0.0.1" not in host_base

    config = S3Config(
        access_key=access_key,
        secret_key=secret_key,
        host_base=host_base,
        host_bucket=host_bucket,
        use_https=use_https,
        signature_v2=False,
        region=region,
    )

    write("")
    write("Configuration summary:")
    write(f"  Endpoint: {config.endpoint_url}")
    write(f"  Region: {config.region}")
    write(f"  HTTPS: {config.use_https}")
    write("")
    write("Where would you like to save this configuration?")
    write("1. Current directory (.s3cfg)")
    write("2. Home directory (~/.s3cfg)")
    choice = ask("Choice (1-2, default: 2): ")
    if choice == "1":
        path = Path(".s3cfg")
    elif choice in {"", "2"}:
        path = Path.home() / ".s3cfg"
    else:
        raise ConfigError("invalid choice")

    try:
        save_s3_config(config, path)
    except OSError as exc:
        raise ConfigError(f"failed to save configuration: {exc}") from exc
    write("")
    write(f"Configuration saved to: {path}")
    write("")
    return config
