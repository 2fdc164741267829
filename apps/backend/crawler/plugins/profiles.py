"""
Built-in site profiles for common applicant-tracking systems.
"""
from .base import ProfileKind, make_profile

# Shared description selectors; the generic profile uses them as its primary set
DESCRIPTION_SELECTORS = [
    '[class*="job-description"]',
    '[class*="description"]',
    '[class*="summary"]',
    '[class*="content"]',
    'article',
    'main',
]

# company.wd3.myworkdayjobs.com
WORKDAY_PROFILE = make_profile(
    ProfileKind.WORKDAY,
    r'workday|\.wd\d+\.',
    {
        'title': [
            '[data-automation-id="jobPostingHeader"] h2',
            '[data-automation-id="jobPostingHeader"]',
            '[data-automation-id="jobTitle"]',
        ],
        'company': [
            '[data-automation-id="company"]',
            '[data-automation-id="organizationName"]',
        ],
        'location': [
            '[data-automation-id="locations"]',
            '[data-automation-id="location"]',
        ],
        'qualifications': [
            '[data-automation-id="jobPostingQualifications"]',
        ],
        'description': [
            '[data-automation-id="jobPostingDescription"]',
        ] + DESCRIPTION_SELECTORS,
    },
    wait_for='[data-automation-id="jobPostingHeader"]',
)

# jobs.lever.co/<company>/<id>
LEVER_PROFILE = make_profile(
    ProfileKind.LEVER,
    r'lever\.co',
    {
        'title': ['.posting-headline h2', '.posting-title'],
        'company': ['.main-header-logo img[alt]', '.company-name'],
        'location': ['.posting-categories .location', '.workplaceTypes'],
        'qualifications': [
            '.posting-page .section-wrapper:has(h3:-soup-contains("Requirements"))',
            '.posting-page .section:has(h3:-soup-contains("Qualifications"))',
        ],
        'description': ['.posting-page [data-qa="job-description"]'] + DESCRIPTION_SELECTORS,
    },
    wait_for='.posting-headline',
)

# boards.greenhouse.io/<company>/jobs/<id>
GREENHOUSE_PROFILE = make_profile(
    ProfileKind.GREENHOUSE,
    r'greenhouse\.io',
    {
        'title': ['.app-title', '#header .job-title', 'h1.job-title'],
        'company': ['.company-name', '#header .company-name'],
        'location': ['.location', '.job-info .location'],
        'qualifications': [
            '#content .section-wrapper:has(h3:-soup-contains("Requirements"))',
        ],
        'description': ['#content'] + DESCRIPTION_SELECTORS,
    },
    wait_for='.app-title, #header',
)

GENERIC_PROFILE = make_profile(
    ProfileKind.GENERIC,
    r'.*',
    {
        'title': [
            'h1:not([class*="cookie"]):not([class*="consent"]):not([class*="banner"])',
            '[class*="job-title"]',
            '[class*="jobTitle"]',
        ],
        'company': ['[class*="company"]', '[class*="employer"]'],
        'location': ['[class*="location"]'],
        'qualifications': ['[class*="requirements"]', '[class*="qualifications"]'],
        'description': DESCRIPTION_SELECTORS,
    },
)

# Order matters: first match wins, generic stays last
BUILTIN_PROFILES = (WORKDAY_PROFILE, LEVER_PROFILE, GREENHOUSE_PROFILE)
