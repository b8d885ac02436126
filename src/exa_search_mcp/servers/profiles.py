from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from exa_search_mcp.models.search import ContentLevel, LiveCrawl


class DomainProfile(BaseModel):
    """Everything that distinguishes one search tool from another: the query it sends and where it looks."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    name: str = Field(description="The name the tool is registered under.")
    description: str
    query_template: str = Field(default="{query}", description="Augments the caller's query. Must contain `{query}`.")
    include_domains: tuple[str, ...] = ()
    search_type: str = "neural"
    live_crawl: LiveCrawl = LiveCrawl.FALLBACK
    default_content_level: ContentLevel = ContentLevel.SUMMARY

    def build_query(self, query: str) -> str:
        return self.query_template.format(query=query)


WEB_SEARCH = DomainProfile(
    name="web_search",
    description=(
        "Searches the web in real-time. Returns: page content, titles, URLs. Use when: need current information beyond training data."
    ),
    search_type="auto",
)

ACADEMIC_SEARCH = DomainProfile(
    name="academic_search",
    description="Searches academic papers and research. Returns: papers, abstracts, citations. Use when: need scholarly sources.",
    query_template="{query} academic paper research study",
    include_domains=("arxiv.org", "scholar.google.com", "researchgate.net", "pubmed.ncbi.nlm.nih.gov", "ieee.org", "acm.org"),
)

COMPANY_SEARCH = DomainProfile(
    name="company_search",
    description=(
        "Searches company information and news. Returns: business data, financials, recent news. "
        "Use when: researching businesses or organizations."
    ),
    query_template="{query} company business corporation information news financial",
    include_domains=(
        "bloomberg.com",
        "reuters.com",
        "crunchbase.com",
        "sec.gov",
        "linkedin.com",
        "forbes.com",
        "businesswire.com",
        "prnewswire.com",
    ),
    live_crawl=LiveCrawl.AUTO,
)

COMPETITOR_SEARCH = DomainProfile(
    name="competitor_search",
    description=(
        "Finds business competitors. Returns: similar companies, market analysis. Use when: asked 'who competes with X' or for "
        "competitive analysis."
    ),
    query_template="{query} competitors similar companies competitive landscape market",
    include_domains=("crunchbase.com", "bloomberg.com", "techcrunch.com", "forbes.com", "businessinsider.com", "reuters.com", "linkedin.com"),
)

LINKEDIN_SEARCH = DomainProfile(
    name="linkedin_search",
    description=(
        "Searches LinkedIn profiles and companies. Returns: professional profiles, company pages. "
        "Use when: researching people or professional networks."
    ),
    query_template="{query} LinkedIn",
    include_domains=("linkedin.com",),
    live_crawl=LiveCrawl.AUTO,
)

WIKIPEDIA_SEARCH = DomainProfile(
    name="wikipedia_search",
    description="Searches Wikipedia. Returns: article summaries, factual content. Use when: need encyclopedic or reference information.",
    query_template="{query} Wikipedia",
    include_domains=("wikipedia.org",),
)

GITHUB_SEARCH = DomainProfile(
    name="github_search",
    description=(
        "Searches GitHub repositories and code. Returns: repos, code snippets, READMEs. "
        "Use when: looking for code examples or open source projects."
    ),
    query_template="{query} GitHub",
    include_domains=("github.com",),
)

DEFAULT_PROFILES: tuple[DomainProfile, ...] = (
    WEB_SEARCH,
    ACADEMIC_SEARCH,
    COMPANY_SEARCH,
    COMPETITOR_SEARCH,
    LINKEDIN_SEARCH,
    WIKIPEDIA_SEARCH,
    GITHUB_SEARCH,
)
