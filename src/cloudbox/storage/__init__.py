"""SQLite persistence shared by catalog, notifications and the local queue."""
