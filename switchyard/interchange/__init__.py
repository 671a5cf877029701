from .jsonc import CommentScanner, ScanState, loads, strip_comments
from .models import (
    AppType,
    OperationResult,
    Provider,
    ProviderEdit,
    ProviderListing,
    validate_identifier,
)
from .tables import (
    extract_current_id,
    parse_env_vars,
    parse_mcp_servers,
    parse_prompts,
    parse_providers,
    parse_skills,
)
from .translators import TRANSLATORS, apply_edit, from_canonical, get_translator, to_canonical, translate_across

__all__ = [
    "AppType",
    "CommentScanner",
    "OperationResult",
    "Provider",
    "ProviderEdit",
    "ProviderListing",
    "ScanState",
    "TRANSLATORS",
    "apply_edit",
    "extract_current_id",
    "from_canonical",
    "get_translator",
    "loads",
    "parse_env_vars",
    "parse_mcp_servers",
    "parse_prompts",
    "parse_providers",
    "parse_skills",
    "strip_comments",
    "to_canonical",
    "translate_across",
    "validate_identifier",
]
