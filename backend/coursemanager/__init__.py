"""Course manager backend: users, classrooms, tags and event scheduling."""
