"""Settings read from the environment (and a local .env file)."""
import os
import re
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from dotenv import load_dotenv

from utils.auth import CLOUD_PLATFORM_SCOPE

load_dotenv()

SCOPES_ENV_VAR = "GCP_TOKEN_SCOPES"
KEY_FILE_ENV_VAR = "GCP_TOKEN_KEY_FILE"


def normalize_scopes(scopes: Iterable[str]) -> List[str]:
    """Strips blanks and drops repeated scopes, keeping the first occurrence of each."""
    result = []
    for scope in scopes:
        scope = scope.strip()
        if scope and scope not in result:
            result.append(scope)
    return result


def parse_scopes(value: str | None) -> List[str]:
    """Splits a comma or whitespace separated scope list."""
    if not value:
        return []
    return normalize_scopes(re.split(r"[,\s]+", value.strip()))


@dataclass(frozen=True)
class Settings:
    """Defaults for building a token client."""
    scopes: Tuple[str, ...] = (CLOUD_PLATFORM_SCOPE,)
    key_file: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        scopes = parse_scopes(os.getenv(SCOPES_ENV_VAR)) or [CLOUD_PLATFORM_SCOPE]
        return cls(scopes=tuple(scopes), key_file=os.getenv(KEY_FILE_ENV_VAR) or None)
