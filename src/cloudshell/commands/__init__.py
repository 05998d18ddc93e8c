"""Built-in CLI sub-commands for cloudshell.

* :mod:`~cloudshell.commands.environment` -- ``info``, ``start``, and
  ``connect``/``ssh``.
* :mod:`~cloudshell.commands.key` -- list, add, and remove public keys.
* :mod:`~cloudshell.commands.auth` -- log in, log out, and show status.

Multi-command groups export a :class:`typer.Typer` sub-application; single
commands are plain callbacks registered on the root app.
"""
