from .catalog_matcher import match_candidates, name_similarity
from .import_aggregator import build_import_candidates, select_for_submission, overall_confidence, ImportValidationError
from .trading_profile import synthesize, classify_risk, classify_membership
