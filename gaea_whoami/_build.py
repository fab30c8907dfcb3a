# Rewritten by the image build, e.g.:
#   sed -i "s/^VERSION = .*/VERSION = \"$VERSION\"/" gaea_whoami/_build.py
VERSION = "dev"
GIT_COMMIT = "unknown"
BUILD_TIME = "unknown"
