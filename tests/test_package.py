"""Tests for the lec package."""


def test_package_imports():
    """Test that the package can be imported successfully."""
    import lec

    assert lec is not None


def test_package_version():
    """Test that the package has a version string."""
    from lec import __version__

    assert __version__ == "0.1.0"
