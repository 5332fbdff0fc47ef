from icglr_spine.cli import app

app()
