"""Index names shared by every engine."""

INDEX_BASE_POSTS = "posts"
INDEX_BASE_CHANNELS = "channels"
INDEX_BASE_USERS = "users"
INDEX_BASE_FILES = "files"

INDEX_BASES = (INDEX_BASE_POSTS, INDEX_BASE_CHANNELS, INDEX_BASE_USERS, INDEX_BASE_FILES)
