"""Client for listing a repository's self-hosted runners."""

import structlog
from pydantic import ValidationError

from runner_monitor.config.schemas import RepositoryConfig
from runner_monitor.fetch.client import HttpFetcher
from runner_monitor.fetch.models import FetchResult
from runner_monitor.github.constants import (
    GITHUB_API_BASE_URL,
    GITHUB_API_RUNNERS_PATH,
    GITHUB_API_VERSION,
    GITHUB_RUNNERS_MAX_PAGES,
    GITHUB_RUNNERS_PAGE_SIZE,
)
from runner_monitor.github.errors import RunnerFetchError
from runner_monitor.github.models import RemoteRunner


logger = structlog.get_logger()


class GitHubRunnerClient:
    """Fetches the full runner set of a repository.

    Pages through the API with ``per_page=100`` until ``total_count`` runners
    were read or a short page is returned. Any fetch or parse failure raises
    ``RunnerFetchError``; a partial runner set is never returned.

    API documentation:
    https://docs.github.com/en/rest/actions/self-hosted-runners
    """

    def __init__(
        self,
        http_client: HttpFetcher,
        token: str,
        base_url: str = GITHUB_API_BASE_URL,
        pass_id: str = "",
    ) -> None:
        """Initialize the client.

        Args:
            http_client: HTTP fetcher used for API calls.
            token: GitHub token with access to the repositories' runners.
            base_url: API root (overridable for GitHub Enterprise).
            pass_id: Pass identifier for logging.
        """
        self._http = http_client
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._log = logger.bind(component="github", pass_id=pass_id)

    def list_runners(self, repo: RepositoryConfig) -> list[RemoteRunner]:
        """List every runner registered to a repository.

        Args:
            repo: Repository to query.

        Returns:
            The remote runners, in API order.

        Raises:
            RunnerFetchError: If any page cannot be fetched or parsed.
        """
        log = self._log.bind(repository=repo.slug)
        url = self._base_url + GITHUB_API_RUNNERS_PATH.format(
            owner=repo.owner, repo=repo.name
        )
        headers = self._build_headers()

        runners: list[RemoteRunner] = []
        for page in range(1, GITHUB_RUNNERS_MAX_PAGES + 1):
            result = self._http.get(
                url,
                extra_headers=headers,
                params={"per_page": GITHUB_RUNNERS_PAGE_SIZE, "page": page},
            )
            if result.error is not None:
                raise RunnerFetchError(
                    repo.slug, result.error.message, status_code=result.status_code
                )

            page_runners, total_count = self._parse_page(repo.slug, result)
            runners.extend(page_runners)

            if (
                len(page_runners) < GITHUB_RUNNERS_PAGE_SIZE
                or len(runners) >= total_count
            ):
                break
        else:
            log.warning("runner_pages_truncated", max_pages=GITHUB_RUNNERS_MAX_PAGES)
            raise RunnerFetchError(
                repo.slug,
                f"runner listing exceeds {GITHUB_RUNNERS_MAX_PAGES} pages "
                f"({len(runners)} of {total_count} read)",
            )

        log.info("runners_fetched", count=len(runners), pages=page)
        return runners

    def _build_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "Authorization": f"Bearer {self._token}",
        }

    def _parse_page(
        self, slug: str, result: FetchResult
    ) -> tuple[list[RemoteRunner], int]:
        """Parse one page of the runners listing.

        Args:
            slug: Repository slug for error messages.
            result: Successful fetch result.

        Returns:
            Tuple of (runners on the page, total_count reported by the API).

        Raises:
            RunnerFetchError: If the body is not a valid runners listing.
        """
        try:
            payload = result.json_body()
        except ValueError as e:
            raise RunnerFetchError(slug, f"Invalid JSON response: {e}") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("runners"), list):
            raise RunnerFetchError(slug, "Response has no 'runners' array")

        try:
            runners = [RemoteRunner.model_validate(r) for r in payload["runners"]]
        except ValidationError as e:
            raise RunnerFetchError(slug, f"Malformed runner descriptor: {e}") from e

        total_count = payload.get("total_count")
        if not isinstance(total_count, int):
            total_count = len(runners)
        return runners, total_count
