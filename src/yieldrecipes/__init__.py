__all__ = [
    # Errors
    "RecipeError",
    "ConfigError",
    "ApiError",
    "SigningError",
    "PipelineError",
    "PreparationError",
    "TransactionFailedError",
    "ConfirmationTimeoutError",
    # Configuration
    "Settings",
    "get_settings",
    # HTTP
    "ApiClient",
    "YieldsClient",
    "StakeKitClient",
    "PerpsClient",
    # Models
    "Action",
    "Transaction",
    "TransactionStatus",
    # Pipeline
    "TransactionPipeline",
    "PipelineResult",
    "RetryPolicy",
    "ConfirmationPolicy",
    "IDEMPOTENT_RETRY_POLICY",
    "NO_RETRY_POLICY",
    "FixedDelayWait",
    "BalanceArrivalWait",
    # Signing
    "SigningAdapter",
    "SigningFormat",
    "WalletSet",
    "verify_signed_metadata",
    # Schema
    "SchemaPrompter",
    "PromptContext",
    "parse_fields",
]

from .errors import (
    ApiError,
    ConfigError,
    ConfirmationTimeoutError,
    PipelineError,
    PreparationError,
    RecipeError,
    SigningError,
    TransactionFailedError,
)
from .config import Settings, get_settings
from .pneuma.client import ApiClient
from .pneuma.models import Action, Transaction, TransactionStatus
from .pneuma.perps import PerpsClient
from .pneuma.pipeline import (
    IDEMPOTENT_RETRY_POLICY,
    NO_RETRY_POLICY,
    BalanceArrivalWait,
    ConfirmationPolicy,
    FixedDelayWait,
    PipelineResult,
    RetryPolicy,
    TransactionPipeline,
)
from .pneuma.stakekit import StakeKitClient
from .pneuma.yields import YieldsClient
from .schema.fields import parse_fields
from .schema.prompter import PromptContext, SchemaPrompter
from .sigil.metadata import verify_signed_metadata
from .sigil.signers import SigningAdapter, SigningFormat
from .sigil.wallets import WalletSet
