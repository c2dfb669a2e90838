__version__ = "0.1.0"

# Set to an empty string for release builds.
VERSION_PRERELEASE = "dev"


def get_human_version() -> str:
    version = f"v{__version__}"
    if VERSION_PRERELEASE:
        version = f"{version}-{VERSION_PRERELEASE}"
    return version
