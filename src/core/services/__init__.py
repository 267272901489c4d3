"""Services: the sequential orchestration behind each CLI command.

Services print nothing themselves; they talk to the user through a
`Reporter` and to the operating system through a `CommandRunner`.
"""
