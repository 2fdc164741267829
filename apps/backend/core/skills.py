"""
Skill tagging against a controlled technology vocabulary.

Matching is case-insensitive and whole-word, where "word" boundaries are
any non-word character. Terms containing punctuation (C++, C#, .NET, CI/CD)
are regex-escaped so they match literally.
"""
import re
import logging
from typing import List, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)

SKILL_VOCABULARY = (
    # Languages
    'JavaScript', 'TypeScript', 'Python', 'Java', 'C++', 'C#', 'Ruby', 'PHP',
    'Go', 'Rust', 'Swift', 'Kotlin',
    # Frameworks
    'React', 'Angular', 'Vue', 'Node.js', 'Express', 'Django', 'Flask',
    'Spring', 'Laravel', '.NET', 'FastAPI', 'Spring Boot', 'Springboot',
    # Databases
    'MySQL', 'PostgreSQL', 'MongoDB', 'Redis', 'Oracle', 'SQL Server',
    'DynamoDB', 'Cassandra', 'SQL',
    # Cloud / devops
    'AWS', 'Azure', 'GCP', 'Google Cloud', 'Cloud', 'Docker', 'Kubernetes', 'Jenkins',
    'Terraform', 'Ansible',
    # Tools
    'Git', 'GitHub', 'GitLab', 'Bitbucket', 'JIRA', 'Yocto', 'GCC', 'GDB',
    'Grafana',
    # Web
    'HTML', 'CSS', 'GraphQL', 'REST', 'API', 'OAuth',
    # Methodologies
    'Agile', 'Scrum', 'Kanban', 'DevOps', 'CI/CD', 'Microservices',
    # Data / AI
    'Machine Learning', 'ML', 'AI', 'Deep Learning', 'TensorFlow', 'PyTorch',
    # Operating systems
    'Linux', 'Unix', 'Windows', 'macOS', 'Android', 'iOS',
)


def _compile(term: str) -> Pattern:
    # \b fails on terms that start or end with punctuation, so use lookarounds
    return re.compile(r'(?<!\w)' + re.escape(term) + r'(?!\w)', re.IGNORECASE)


_PATTERNS: List[Tuple[str, Pattern]] = [(term.lower(), _compile(term)) for term in SKILL_VOCABULARY]


def extract_skills(text: Optional[str], limit: Optional[int] = None) -> List[str]:
    """
    Find vocabulary terms in free text.

    Args:
        text: Text to scan (page body, description, ...)
        limit: Optional cap applied after sorting

    Returns:
        Sorted, de-duplicated, lowercase list of matched terms
    """
    if not text:
        return []

    found = {term for term, pattern in _PATTERNS if pattern.search(text)}
    skills = sorted(found)

    if limit is not None:
        skills = skills[:limit]

    return skills


def normalize_skills(value) -> List[str]:
    """Coerce a stored skills value (list, comma string, None) to the canonical form."""
    if not value:
        return []
    if isinstance(value, str):
        items = value.split(',')
    else:
        items = list(value)

    cleaned = {str(item).strip().lower() for item in items if item is not None and str(item).strip()}
    return sorted(cleaned)
