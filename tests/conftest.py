"""Shared fixtures: sample filings and an in-memory filing source."""

from datetime import datetime, timezone

import pytest

from alphavault.errors import UpstreamFetchFailure
from alphavault.models import CompanyRef, FeedFiling, FilingFeed, MaterialEvents
from alphavault.reference_data import ReferenceData


S4_TEXT = """\
ACCESSION NUMBER:		0001193125-24-071234
CONFORMED SUBMISSION TYPE:	S-4
PUBLIC DOCUMENT COUNT:		14
FILED AS OF DATE:		20240315
COMPANY CONFORMED NAME:			ALPHA HOLDINGS INC
CENTRAL INDEX KEY:			0001234567
STATE OF INCORPORATION:			DE
FISCAL YEAR END:			1231

FORM S-4
REGISTRATION STATEMENT UNDER THE SECURITIES ACT OF 1933

Acquirer: Alpha Holdings Inc. (NASDAQ: ALPH)
Target: Beta Systems Corp. (NYSE: BETA)
Effective Date: June 30, 2025

The Agreement and Plan of Merger dated January 10, 2024 provides for the merger of Beta with a wholly owned subsidiary of Alpha. Alpha is incorporated in Delaware.

Under the merger agreement, the aggregate consideration of approximately $1.5 billion will be paid in cash and shares of Alpha common stock. Each Beta share will be converted at an exchange ratio of 0.85 shares of Alpha stock plus $12.00 per share in cash, representing a premium of 32.5% based on the closing price of Beta shares on January 9, 2024.
Alpha will fund the cash portion with cash on hand and a new term loan.

Goldman Sachs & Co. LLC is acting as financial advisor to Alpha and Morgan Stanley & Co. LLC is acting as financial advisor to Beta. Wachtell, Lipton, Rosen & Katz is legal counsel to Alpha and Skadden, Arps, Slate, Meagher & Flom LLP is legal counsel to Beta. Deloitte & Touche LLP audits the financial statements of Alpha.

Completion of the merger is subject to the expiration of the waiting period under the Hart-Scott-Rodino Antitrust Improvements Act of 1976 (the HSR Act), review by the Federal Trade Commission, effectiveness of this registration statement with the Securities and Exchange Commission, shareholder approval, receipt of regulatory approval and no material adverse effect on either company.

The combined company expects to realize synergies of approximately $150 million within 3 years, including cost savings of $100 million and revenue synergies of $50 million.

The special meeting of Beta stockholders will be held on April 15, 2024, and the record date is February 1, 2024. Certain Beta directors have entered into voting agreements. Beta stockholders who do not vote in favor will have appraisal rights under Delaware law.

Either party may terminate the merger agreement if the merger has not been completed by the outside date of December 31, 2024. Beta may terminate the merger agreement to accept a superior proposal, in which case Beta must pay Alpha a termination fee of $45 million.

RISK FACTORS

The integration of the businesses of Alpha and Beta involves significant risk and may not succeed.
Regulatory uncertainty may delay the closing of the merger.
Market conditions could reduce the value of the merger consideration.
The loss of key personnel could harm the combined company.

EXHIBIT 2.1 - Agreement and Plan of Merger
EXHIBIT 99.1 - Form of Voting Agreement
EXHIBIT 99.2 - Fairness Opinion of Goldman Sachs & Co. LLC
"""


EIGHT_K_TEXT = """\
ACCESSION NUMBER:		0000987654-24-000010
CONFORMED SUBMISSION TYPE:	8-K
PUBLIC DOCUMENT COUNT:		3
CONFORMED PERIOD OF REPORT:	20240301
FILED AS OF DATE:		20240304
COMPANY CONFORMED NAME:			GAMMA INDUSTRIES INC
CENTRAL INDEX KEY:			0000987654

FORM 8-K
CURRENT REPORT
Gamma Industries Inc. (NYSE: GMA)
Date of Report (Date of earliest event reported): March 1, 2024

Item 1.01 Entry into a Material Definitive Agreement
On March 1, 2024, the Company entered into a credit agreement with Delta Bank Corp. The agreement has a term of 5 years and provides for borrowings in an aggregate amount of up to $500 million. The agreement contains customary confidentiality and indemnification provisions.

Item 2.01 Completion of Acquisition or Disposition of Assets
On March 1, 2024, the Company completed the acquisition of all outstanding shares of Epsilon Labs LLC for a purchase price of $250 million. The Company acquired Epsilon Labs LLC for $250 million in cash, funded with cash on hand and borrowings under its credit facility. The transaction closed on March 1, 2024.

Item 5.02 Departure of Directors or Certain Officers
On March 1, 2024, John Smith resigned as Chief Financial Officer. The Board appointed Jane Doe as CFO, effective March 4, 2024.

Item 9.01 Financial Statements and Exhibits
Exhibit 10.1 - Credit Agreement
Exhibit 99.1 - Press Release

SIGNATURE
By: John Carter
Title: Chief Executive Officer
"""


AS_OF = datetime(2024, 6, 1, tzinfo=timezone.utc)


def filing(**fields) -> FeedFiling:
    return FeedFiling.model_validate(fields)


class FakeSource:
    """In-memory FilingSource.  Names in ``fail`` raise ``UpstreamFetchFailure``."""

    def __init__(
        self,
        company: CompanyRef | None = None,
        eight_k: list[FeedFiling] | None = None,
        s4: list[FeedFiling] | None = None,
        events: MaterialEvents | None = None,
        contents: dict[str, str] | None = None,
        fail: tuple[str, ...] = (),
    ):
        self.company = company or CompanyRef(cik="320193", company_name="Apple Inc.", ticker="AAPL")
        self.eight_k = eight_k or []
        self.s4 = s4 or []
        self.events = events or MaterialEvents()
        self.contents = contents or {}
        self.fail = fail
        self.calls: list[tuple[str, dict]] = []

    def _check(self, name: str, **kwargs) -> None:
        self.calls.append((name, kwargs))
        if name in self.fail:
            raise UpstreamFetchFailure(name, "feed unavailable")

    def resolve_company(self, ticker: str) -> CompanyRef:
        self._check("resolve_company", ticker=ticker)
        return self.company

    def get_8k_bulk(self, days: int = 90, items: str = "", max_results: int = 500) -> FilingFeed:
        self._check("get_8k_bulk", days=days, items=items, max_results=max_results)
        return FilingFeed(filings=self.eight_k, count=len(self.eight_k))

    def get_s4_feed(self, cik: str = "", limit: int = 50) -> FilingFeed:
        self._check("get_s4_feed", cik=cik, limit=limit)
        return FilingFeed(filings=self.s4, count=len(self.s4))

    def get_s4_bulk(self, days: int = 90, max_results: int = 200) -> FilingFeed:
        self._check("get_s4_bulk", days=days, max_results=max_results)
        return FilingFeed(filings=self.s4, count=len(self.s4))

    def get_s4_content(self, accession: str, cik: str) -> str:
        self._check("get_s4_content", accession=accession, cik=cik)
        content = self.contents.get(accession)
        if content is None:
            raise UpstreamFetchFailure("get_s4_content", f"no content for {accession}")
        return content

    def get_material_events(self, cik: str = "", days: int = 30) -> MaterialEvents:
        self._check("get_material_events", cik=cik, days=days)
        return self.events


@pytest.fixture
def s4_text():
    return S4_TEXT


@pytest.fixture
def eight_k_text():
    return EIGHT_K_TEXT


@pytest.fixture
def reference():
    return ReferenceData()


@pytest.fixture
def as_of():
    return AS_OF


def padded(text: str, paragraph: str, size: int = 200_000) -> str:
    """``text`` followed by ``paragraph`` repeated until the result is ``size`` characters."""
    repeats = max(0, size - len(text)) // len(paragraph) + 1
    return text + paragraph * repeats
