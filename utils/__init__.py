from .records import ProcessSample
from .records import AnalysisRecord
from .records import DevModeAnalysisRecord
from .records import RISK_LEVELS
from .records import DEV_MODE_TYPES
from .process_batching import deduplicate_processes
from .process_batching import create_process_batches
from .process_batching import chunk_processes
from .process_batching import split_into_batches
from .process_batching import TARGET_BATCH_SIZE
from .process_prompts import build_classification_prompt
from .process_prompts import build_dev_mode_prompt
from .error_handling import ConfigError
from .error_handling import InputError
from .error_handling import ModelError
from .error_handling import ParseError
from .error_handling import ResponseFormatError
from .error_handling import NotInitializedError
from .error_handling import BusyError
from .error_handling import AnalysisCancelledError
from .error_handling import PersistenceError
from .error_handling import ProviderHTTPError
from .error_handling import NetworkTransientError
from .error_handling import CombinedFallbackError
from .error_handling import get_error_message
from .ai_client import with_retry
from .ai_client import is_retryable_error
from .ai_client import extract_json_array
from .ai_client import parse_analysis_response
from .ai_client import parse_dev_mode_response
from .ai_client import GetLogfile
from .ai_client import set_run_logfile
from .ai_client import BaseAIProvider
from .ai_client import OpenRouterProvider
from .ai_client import GeminiProvider
from .ai_client import AnthropicProvider
from .ai_client import create_provider
from .analysis_cache import AnalysisCache


__all__ = ["ProcessSample",
           "AnalysisRecord",
           "DevModeAnalysisRecord",
           "RISK_LEVELS",
           "DEV_MODE_TYPES",
           "deduplicate_processes",
           "create_process_batches",
           "chunk_processes",
           "split_into_batches",
           "TARGET_BATCH_SIZE",
           "build_classification_prompt",
           "build_dev_mode_prompt",
           "ConfigError",
           "InputError",
           "ModelError",
           "ParseError",
           "ResponseFormatError",
           "NotInitializedError",
           "BusyError",
           "AnalysisCancelledError",
           "PersistenceError",
           "ProviderHTTPError",
           "NetworkTransientError",
           "CombinedFallbackError",
           "get_error_message",
           "with_retry",
           "is_retryable_error",
           "extract_json_array",
           "parse_analysis_response",
           "parse_dev_mode_response",
           "GetLogfile",
           "set_run_logfile",
           "BaseAIProvider",
           "OpenRouterProvider",
           "GeminiProvider",
           "AnthropicProvider",
           "create_provider",
           "AnalysisCache"]
