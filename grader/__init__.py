"""SmarTest grader: AI-assisted evaluation of student answers."""
