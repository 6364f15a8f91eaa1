"""Constants for the GitHub runners API."""

GITHUB_API_BASE_URL = "https://api.github.com"
GITHUB_API_RUNNERS_PATH = "/repos/{owner}/{repo}/actions/runners"
GITHUB_API_VERSION = "2022-11-28"

# GitHub caps per_page at 100
GITHUB_RUNNERS_PAGE_SIZE = 100

# Upper bound on pages fetched for one repository
GITHUB_RUNNERS_MAX_PAGES = 50
