"""Static chart page publishing."""

from hbar.publish.chart import encode_csv, publish_chart

__all__ = ["encode_csv", "publish_chart"]
