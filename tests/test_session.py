from classroom_portal.services.session import AuthGate, SessionState, SessionStore


def test_login_with_fixed_credentials_persists(temp_config) -> None:
    gate = AuthGate(SessionStore(temp_config))
    assert gate.is_authenticated is False

    assert gate.login("sunrise", "password") is True
    assert gate.is_authenticated is True

    reopened = AuthGate(SessionStore(temp_config))
    assert reopened.is_authenticated is True


def test_wrong_credentials_leave_state_unchanged(temp_config) -> None:
    gate = AuthGate(SessionStore(temp_config))

    assert gate.login("sunrise", "Password") is False
    assert gate.login("teacher", "password") is False
    assert gate.is_authenticated is False
    assert not temp_config.session_file.exists()


def test_logout_clears_persisted_flag(temp_config) -> None:
    gate = AuthGate(SessionStore(temp_config))
    gate.login("sunrise", "password")

    gate.logout()

    assert gate.is_authenticated is False
    assert AuthGate(SessionStore(temp_config)).is_authenticated is False
    gate.logout()


def test_corrupt_session_file_means_logged_out(temp_config) -> None:
    store = SessionStore(temp_config)
    store.path.write_text("{not json", encoding="utf-8")
    assert store.load() == SessionState(authenticated=False)

    store.path.write_text('{"authenticated": "yes"}', encoding="utf-8")
    assert store.load().authenticated is False

    store.save(SessionState(authenticated=True))
    assert store.load().authenticated is True
