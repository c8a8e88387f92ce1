from .cli import app

app(prog_name="linear-notion-sync")
