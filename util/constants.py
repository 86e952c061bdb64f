class InternalURIs:
    API = "/api"
    V1 = API + "/v1"
    CASES = V1 + "/cases"
    CASE = CASES + "/{caseId}"
    CASE_ATTEMPTS = CASE + "/attempts"
    CLASSIFY = CASE + "/classify"
    ANSWER = CASE + "/answer"
    VALIDATE = CASE + "/validate"


# Model output is parsed with these cutoffs, before any calibration.
MODEL_HIGH_THRESHOLD = 0.85
MODEL_MEDIUM_THRESHOLD = 0.65

# Calibrated and rule-adjusted confidence use these.
CALIBRATED_HIGH_THRESHOLD = 0.80
CALIBRATED_MEDIUM_THRESHOLD = 0.65

CORRECTION_MARKER = "[CORRECTED]"
