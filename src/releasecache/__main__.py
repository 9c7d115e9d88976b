from releasecache.cli import app

app(prog_name="releasecache")
