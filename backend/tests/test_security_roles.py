from security.roles import extract_authorities


def test_roles_are_prefixed():
    claims = {"resource_access": {"viewer-hub": {"roles": ["admin", "user"]}, "other": {"roles": ["x"]}}}

    assert extract_authorities(claims, "viewer-hub") == {"ROLE_admin", "ROLE_user"}


def test_missing_sections_give_no_authorities():
    assert extract_authorities({}, "viewer-hub") == set()
    assert extract_authorities({"resource_access": {}}, "viewer-hub") == set()
    assert extract_authorities({"resource_access": {"viewer-hub": {}}}, "viewer-hub") == set()
    assert extract_authorities({"resource_access": {"viewer-hub": {"roles": "admin"}}}, "viewer-hub") == set()


def test_resource_name_defaults_to_setting(monkeypatch):
    from security import roles

    roles.get_settings.cache_clear()
    monkeypatch.setenv("SECURITY_RESOURCE_NAME", "hub")
    try:
        assert extract_authorities({"resource_access": {"hub": {"roles": ["reader"]}}}) == {"ROLE_reader"}
    finally:
        roles.get_settings.cache_clear()
