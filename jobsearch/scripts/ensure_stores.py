from jobsearch.database import ensure_tables_exist
from jobsearch.services.search_index import get_search_index


def main():
    created = ensure_tables_exist()
    print(f"DB table check complete: created {len(created)} missing tables.")
    if get_search_index().ensure_index():
        print("Search index created.")
    else:
        print("Search index already exists; mapping left unchanged.")


if __name__ == "__main__":
    main()
