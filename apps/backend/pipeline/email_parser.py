"""
Job-alert email parser.

Alert emails carry a single HTML table: a header row followed by one row
per job, with the company in the first cell and the job title (linked to
the application page) in the second.
"""

import logging
from dataclasses import dataclass, replace
from typing import List, Optional

from bs4 import BeautifulSoup

from core.normalize import clean_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailJobTuple:
    """One job row from an alert email plus the email it came from."""
    company_name: str
    job_title: str
    apply_link: str
    email_subject: str = ""
    email_date: str = ""
    email_from: str = ""

    def with_provenance(self, subject: Optional[str], date: Optional[str], sender: Optional[str]) -> 'EmailJobTuple':
        return replace(
            self,
            email_subject=subject or "",
            email_date=date or "",
            email_from=sender or "",
        )

    def to_dict(self) -> dict:
        return {
            'company_name': self.company_name,
            'job_title': self.job_title,
            'apply_link': self.apply_link,
            'email_subject': self.email_subject,
            'email_date': self.email_date,
            'email_from': self.email_from,
        }


def parse_job_table(html: Optional[str]) -> List[EmailJobTuple]:
    """
    Parse job rows out of an alert email body.

    Only the first table is read and its first row is treated as a header.
    Rows with fewer than two cells, or with an empty company, title or
    link, are skipped.

    Args:
        html: Email HTML body

    Returns:
        Job tuples in table order (without provenance)
    """
    if not html:
        return []

    soup = BeautifulSoup(html, 'lxml')
    table = soup.find('table')
    if table is None:
        logger.debug("[email_parser] No table in email body")
        return []

    jobs: List[EmailJobTuple] = []
    rows = table.find_all('tr')

    for index, row in enumerate(rows[1:], start=1):
        cells = row.find_all('td')
        if len(cells) < 2:
            continue

        company = clean_text(cells[0].get_text(" "))
        title = clean_text(cells[1].get_text(" "))
        anchor = cells[1].find('a', href=True)
        link = anchor['href'].strip() if anchor else ""

        if not (company and title and link):
            logger.debug(f"[email_parser] Skipping incomplete row {index}")
            continue

        jobs.append(EmailJobTuple(company_name=company, job_title=title, apply_link=link))

    return jobs
