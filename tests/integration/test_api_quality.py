def test_error_response_has_unified_shape(client):
    response = client.get("/scheduling/readings?user_id=1")
    assert response.status_code == 401
    body = response.json()
    assert "error" in body
    assert "code" in body["error"]
    assert "message" in body["error"]
    assert "detail" in body
    assert "request_id" in body


def test_validation_errors_use_the_same_envelope(client, make_user, auth_headers):
    response = client.post(
        "/scheduling/book",
        headers=auth_headers(make_user()),
        json={"reader_id": 1, "time_slot": {"date": "2030-01-07", "start_time": "25:00"}, "reading_type": "chat"},
    )
    assert response.status_code == 422
    body = response.json()
    assert body["error"]["code"] == "validation_error"
    assert isinstance(body["detail"], list)


def test_health_endpoint_returns_ok_and_request_id(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert "x-request-id" in response.headers


def test_readings_pagination_limit_offset(client, make_reader, make_user, auth_headers, upcoming_monday):
    reader = make_reader()
    client_user = make_user()
    headers = auth_headers(client_user)
    ids = []
    for start_time in ("09:00", "10:00", "11:00"):
        response = client.post(
            "/scheduling/book",
            headers=headers,
            json={
                "reader_id": reader.user_id,
                "time_slot": {"date": upcoming_monday.isoformat(), "start_time": start_time},
                "reading_type": "chat",
                "duration": 60,
            },
        )
        ids.append(response.json()["id"])

    paged = client.get(f"/scheduling/readings?user_id={client_user.id}&limit=1&offset=1", headers=headers)
    assert paged.status_code == 200
    assert [item["id"] for item in paged.json()] == [ids[1]]
