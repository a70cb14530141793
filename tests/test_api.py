import logging

import pytest
from fastapi.testclient import TestClient

import api as api_module


@pytest.fixture
def client(lib):
    api_module.app.dependency_overrides[api_module.get_library] = lambda: lib
    try:
        yield TestClient(api_module.app)
    finally:
        api_module.app.dependency_overrides.clear()


def create_author(client, name="Toni Morrison", email="toni@example.com", **extra):
    response = client.post("/api/authors", json={"name": name, "email": email, **extra})
    assert response.status_code == 201, response.text
    return response.json()


def create_book(client, author_id, title, **extra):
    response = client.post("/api/books", json={"title": title, "authorId": author_id, **extra})
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["db"] is True


# ------------------------- Authors ------------------------- #
def test_author_lifecycle(client):
    author = create_author(client, nationality="American", birthYear=1931)
    assert author["birthYear"] == 1931
    assert "createdAt" in author

    response = client.get(f"/api/authors/{author['id']}")
    assert response.status_code == 200
    assert response.json()["name"] == "Toni Morrison"

    response = client.put(f"/api/authors/{author['id']}", json={"bio": "Nobel laureate", "birthYear": None})
    assert response.status_code == 200
    assert response.json()["bio"] == "Nobel laureate"
    assert response.json()["birthYear"] is None
    assert response.json()["nationality"] == "American"

    response = client.get("/api/authors")
    assert [a["id"] for a in response.json()] == [author["id"]]

    response = client.delete(f"/api/authors/{author['id']}")
    assert response.status_code == 200
    assert client.get(f"/api/authors/{author['id']}").status_code == 404


def test_create_author_accepts_snake_case(client):
    author = create_author(client, birth_year=1931)
    assert author["birthYear"] == 1931


def test_create_author_duplicate_email(client):
    create_author(client)
    response = client.post("/api/authors", json={"name": "Other", "email": "toni@example.com"})
    assert response.status_code == 400
    assert "already exists" in response.json()["detail"]


def test_create_author_missing_fields(client):
    assert client.post("/api/authors", json={"name": "No Email"}).status_code == 422


def test_update_author_errors(client):
    author = create_author(client)
    assert client.put("/api/authors/missing", json={"name": "X"}).status_code == 404
    assert client.put(f"/api/authors/{author['id']}", json={}).status_code == 400
    assert client.put(f"/api/authors/{author['id']}", json={"email": "bad"}).status_code == 400


def test_delete_missing_author(client):
    assert client.delete("/api/authors/missing").status_code == 404


def test_error_body_carries_detail_and_error(client):
    response = client.get("/api/authors/missing")
    assert response.status_code == 404
    assert response.json() == {"detail": "Author not found.", "error": "Author not found."}

    create_author(client)
    response = client.post("/api/authors", json={"name": "Other", "email": "toni@example.com"})
    assert response.status_code == 400
    assert response.json()["error"] == response.json()["detail"]


def test_author_books(client):
    author = create_author(client)
    create_book(client, author["id"], "Beloved", publishedYear=1987)
    create_book(client, author["id"], "Jazz", publishedYear=1992)

    response = client.get(f"/api/authors/{author['id']}/books")
    assert response.status_code == 200
    assert [b["title"] for b in response.json()["books"]] == ["Beloved", "Jazz"]
    assert client.get("/api/authors/missing/books").status_code == 404


# ------------------------- Stats ------------------------- #
def test_author_stats(client):
    author = create_author(client)
    create_book(client, author["id"], "A", pages=100, publishedYear=2000, genre="Novel")
    create_book(client, author["id"], "B", publishedYear=1999, genre=" ")
    create_book(client, author["id"], "C", pages=50, publishedYear=2000, genre="Novel")

    response = client.get(f"/api/authors/{author['id']}/stats")
    assert response.status_code == 200
    assert response.json() == {
        "authorId": author["id"],
        "authorName": "Toni Morrison",
        "totalBooks": 3,
        "firstBook": {"title": "B", "year": 1999},
        "latestBook": {"title": "C", "year": 2000},
        "averagePages": 75,
        "genres": ["Novel"],
        "longestBook": {"title": "A", "pages": 100},
        "shortestBook": {"title": "C", "pages": 50},
    }


def test_author_stats_without_books(client):
    author = create_author(client)
    response = client.get(f"/api/authors/{author['id']}/stats")
    assert response.json() == {
        "authorId": author["id"],
        "authorName": "Toni Morrison",
        "totalBooks": 0,
        "firstBook": None,
        "latestBook": None,
        "averagePages": 0,
        "genres": [],
        "longestBook": None,
        "shortestBook": None,
    }


def test_author_stats_not_found(client):
    assert client.get("/api/authors/missing/stats").status_code == 404


def test_catalog_stats(client):
    author = create_author(client)
    create_book(client, author["id"], "Sula")
    assert client.get("/api/stats").json() == {"totalAuthors": 1, "totalBooks": 1}


def test_unexpected_error_returns_500(lib, monkeypatch, caplog):
    def boom(author_id):
        raise RuntimeError("database exploded")

    monkeypatch.setattr(lib, "get_author_stats", boom)
    api_module.app.dependency_overrides[api_module.get_library] = lambda: lib
    try:
        client = TestClient(api_module.app, raise_server_exceptions=False)
        with caplog.at_level(logging.ERROR):
            response = client.get("/api/authors/any/stats")
    finally:
        api_module.app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error.", "error": "Internal server error."}
    assert "database exploded" in caplog.text


# ------------------------- Books ------------------------- #
def test_book_lifecycle(client):
    author = create_author(client)
    book = create_book(client, author["id"], "Song of Solomon", genre="Novel", pages=337, publishedYear=1977)
    assert book["authorId"] == author["id"]
    assert book["author"] == {"id": author["id"], "name": "Toni Morrison"}

    response = client.get(f"/api/books/{book['id']}")
    assert response.status_code == 200
    assert response.json()["publishedYear"] == 1977

    response = client.put(f"/api/books/{book['id']}", json={"pages": 338})
    assert response.status_code == 200
    assert response.json()["pages"] == 338
    assert response.json()["title"] == "Song of Solomon"

    assert [b["id"] for b in client.get("/api/books").json()] == [book["id"]]

    response = client.delete(f"/api/books/{book['id']}")
    assert response.status_code == 200
    assert client.get(f"/api/books/{book['id']}").status_code == 404
    assert client.delete(f"/api/books/{book['id']}").status_code == 404


def test_create_book_errors(client):
    author = create_author(client)
    assert client.post("/api/books", json={"title": "X", "authorId": "missing"}).status_code == 404
    assert client.post("/api/books", json={"title": "  ", "authorId": author["id"]}).status_code == 400
    assert client.post("/api/books", json={"title": "X", "authorId": author["id"], "pages": -1}).status_code == 422
    assert client.post("/api/books", json={"authorId": author["id"]}).status_code == 422


def test_update_book_errors(client):
    author = create_author(client)
    book = create_book(client, author["id"], "Paradise")
    assert client.put("/api/books/missing", json={"title": "X"}).status_code == 404
    assert client.put(f"/api/books/{book['id']}", json={"authorId": "missing"}).status_code == 404
    assert client.put(f"/api/books/{book['id']}", json={}).status_code == 400


def test_deleting_author_removes_books(client):
    author = create_author(client)
    book = create_book(client, author["id"], "Love")
    client.delete(f"/api/authors/{author['id']}")
    assert client.get(f"/api/books/{book['id']}").status_code == 404


# ------------------------- Search ------------------------- #
@pytest.fixture
def populated(client):
    morrison = create_author(client)
    baldwin = create_author(client, name="James Baldwin", email="james@example.com")
    for i in range(12):
        create_book(client, morrison["id"], f"Morrison {i:02d}", genre="Novel", publishedYear=1970 + i)
    create_book(client, baldwin["id"], "Giovanni's Room", genre="Novel", publishedYear=1956)
    create_book(client, baldwin["id"], "Notes of a Native Son", genre="Essay", publishedYear=1955)
    return client


def test_search_defaults(populated):
    response = populated.get("/api/books/search")
    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 10
    assert body["data"][0]["title"] == "Notes of a Native Son"  # newest first
    assert body["data"][0]["author"]["name"] == "James Baldwin"
    assert body["pagination"] == {
        "page": 1, "limit": 10, "total": 14, "totalPages": 2, "hasNext": True, "hasPrev": False,
    }


def test_search_second_page(populated):
    body = populated.get("/api/books/search", params={"page": "2"}).json()
    assert len(body["data"]) == 4
    assert body["pagination"]["hasNext"] is False
    assert body["pagination"]["hasPrev"] is True


def test_search_filters_and_sort(populated):
    params = {"authorName": "BALDWIN", "sortBy": "publishedYear", "order": "ASC"}
    body = populated.get("/api/books/search", params=params).json()
    assert [b["title"] for b in body["data"]] == ["Notes of a Native Son", "Giovanni's Room"]

    body = populated.get("/api/books/search", params={"genre": "Essay"}).json()
    assert body["pagination"]["total"] == 1

    body = populated.get("/api/books/search", params={"search": "morrison 1", "sortBy": "title", "order": "asc"}).json()
    assert [b["title"] for b in body["data"]] == ["Morrison 10", "Morrison 11"]


def test_search_malformed_parameters_fall_back(populated):
    params = {"page": "-3", "limit": "999", "sortBy": "nope", "order": "sideways"}
    response = populated.get("/api/books/search", params=params)
    assert response.status_code == 200
    pagination = response.json()["pagination"]
    assert pagination["page"] == 1
    assert pagination["limit"] == 50
    assert pagination["totalPages"] == 1
    assert len(response.json()["data"]) == 14


def test_search_non_numeric_limit(populated):
    pagination = populated.get("/api/books/search", params={"limit": "abc"}).json()["pagination"]
    assert pagination["limit"] == 10


def test_search_no_results(client):
    body = client.get("/api/books/search", params={"search": "nothing"}).json()
    assert body == {
        "data": [],
        "pagination": {"page": 1, "limit": 10, "total": 0, "totalPages": 0, "hasNext": False, "hasPrev": False},
    }


@pytest.mark.parametrize("page", ["1000000000000000000", "9" * 30])
def test_search_huge_page_returns_empty_page(populated, page):
    response = populated.get("/api/books/search", params={"page": page, "limit": "50"})
    assert response.status_code == 200
    body = response.json()
    assert body["data"] == []
    assert body["pagination"]["total"] == 14
    assert body["pagination"]["hasNext"] is False
    assert body["pagination"]["hasPrev"] is True
