import esikit


def test_get_version_matches_public_api() -> None:
    assert esikit.get_version() == esikit.__version__
    assert isinstance(esikit.__version__, str)
