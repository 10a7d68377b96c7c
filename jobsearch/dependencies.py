from jobsearch.services.search_index import JobSearchIndex, get_search_index


def get_index() -> JobSearchIndex:
    """Search index used by request handlers; overridden in tests."""
    return get_search_index()
