from tandem.plugins.bootstrap import bootstrap_plugin
from tandem.plugins.confirm_post import confirm_post_plugin

__all__ = ["bootstrap_plugin", "confirm_post_plugin"]
