"""Content limits applied to user input and generated study material."""

# Chat
MAX_CHAT_MESSAGE_LENGTH = 2000

# Flashcards
MAX_FLASHCARD_FRONT_LENGTH = 500
MAX_FLASHCARD_BACK_LENGTH = 1000
MAX_FLASHCARD_SET_NAME_LENGTH = 200

# Subjects
MAX_SUBJECT_NAME_LENGTH = 100
