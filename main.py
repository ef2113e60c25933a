from rich.pretty import pprint

from arbor import *

tool = command("tool", "a tiny demo of nested commands", shell=True, colorful=True)
remote = tool.command("remote", "manage tracked repositories").alias("rmt")
remote.command("add", "add a remote")
remote.command("remove", "remove a remote").alias("rm")
tool.command("status", "show the working tree status").alias("st")


if __name__ == '__main__':
    pprint(tool.resolve())
