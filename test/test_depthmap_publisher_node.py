import pytest

rclpy = pytest.importorskip('rclpy')
pytest.importorskip('cv_bridge')
pytest.importorskip('message_filters')
pytest.importorskip('tf2_ros')

from remode_publisher.depthmap_publisher_node import (  # noqa: E402
    DEFAULT_PUBLISH_RATE,
    DepthmapPublisherNode,
)


@pytest.fixture
def node_with_args():
    nodes = []

    def _make(*params):
        args = ['--ros-args']
        for p in params:
            args += ['-p', p]
        rclpy.init(args=args)
        node = DepthmapPublisherNode()
        nodes.append(node)
        return node

    yield _make
    for node in nodes:
        node.destroy_node()
    rclpy.shutdown()


def test_non_positive_publish_rate_falls_back(node_with_args):
    node = node_with_args('publish_rate:=0.0')
    assert node.publish_rate == DEFAULT_PUBLISH_RATE
    assert node.publish_timer.timer_period_ns == int(1e9 / DEFAULT_PUBLISH_RATE)
