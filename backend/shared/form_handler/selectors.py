"""
CSS selectors shared by the form handlers
"""

INPUTS = ", ".join(
    [
        'input[type="text"]',
        'input[type="email"]',
        'input[type="tel"]',
        'input[type="number"]',
        'input[type="radio"]',
        'input[type="checkbox"]',
        'input[type="password"]',
        'input[type="date"]',
        'input[placeholder*="MM/DD/YYYY"]',
        'input[placeholder*="mm/dd/yyyy"]',
    ]
)
SELECTS = "select"
TEXTAREAS = "textarea"
FILE_INPUT = 'input[type="file"]'
FORM_FIELDS = f"{INPUTS}, {SELECTS}, {TEXTAREAS}"

RESUME_OPTIONS = '[data-testid="ResumeOptionsMenu-btn"]'
RESUME_UPLOAD_BUTTON = '[data-testid="ResumeOptionsMenu-upload"]'
RESUME_PREVIEW = '[data-testid="ResumeThumbnail"]'

SUBMIT = '[data-testid="indeed-apply-button"], button[type="submit"]'
CONTINUE = '[data-testid="continue-button"], button[type="submit"]'
ACTION_BUTTONS = ", ".join(
    [
        'button[type="submit"]',
        'button[class*="submit"]',
        'button[class*="continue"]',
        'button[class*="next"]',
        'button[class*="apply"]',
    ]
)
ACTION_BUTTON_TEXTS = ["submit", "continue", "next", "apply", "review"]

RADIO_GROUPS = 'fieldset[role="radiogroup"]'
ALT_RADIO_GROUPS = 'fieldset, [data-testid^="input-q_"]'

SUCCESS_SELECTORS = [
    ".ia-ApplicationMessage-successMessage",
    ".ia-JobActionConfirmation-container",
    ".ia-SuccessPage",
    ".ia-JobApplySuccess",
    ".submitted-container",
    ".success-container",
]
SUCCESS_TEXTS = [
    "application submitted",
    "successfully applied",
    "thank you for applying",
    "successfully submitted",
    "application complete",
]
