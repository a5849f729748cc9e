#!/usr/bin/env python3
"""ROS 2 implementations of the publisher output ports."""
import numpy as np
import rclpy
from rclpy.node import Node
from rclpy.time import Time
from cv_bridge import CvBridge
from sensor_msgs.msg import Image, PointCloud2, PointField
from sensor_msgs_py import point_cloud2
from std_msgs.msg import Header

from .ports import OutputPort
from .utils.pointcloud_processor import rgb_as_float

INTENSITY_FIELDS = [
    PointField(name='x', offset=0, datatype=PointField.FLOAT32, count=1),
    PointField(name='y', offset=4, datatype=PointField.FLOAT32, count=1),
    PointField(name='z', offset=8, datatype=PointField.FLOAT32, count=1),
    PointField(name='intensity', offset=12, datatype=PointField.FLOAT32, count=1),
]

RGB_FIELDS = [
    PointField(name='x', offset=0, datatype=PointField.FLOAT32, count=1),
    PointField(name='y', offset=4, datatype=PointField.FLOAT32, count=1),
    PointField(name='z', offset=8, datatype=PointField.FLOAT32, count=1),
    PointField(name='rgb', offset=12, datatype=PointField.FLOAT32, count=1),
]

# ----------------- FUNCTIONS ------------------ #

def stamp_to_msg(stamp_ns: int):
    """Convert integer nanoseconds to a builtin_interfaces/Time message."""
    return Time(nanoseconds=int(stamp_ns)).to_msg()


def make_header(frame_id: str, stamp_ns: int) -> Header:
    header = Header()
    header.frame_id = frame_id
    header.stamp = stamp_to_msg(stamp_ns)
    return header


def cloud_to_msg(cloud) -> PointCloud2:
    """
    Convert a PointCloud into a PointCloud2 message.

    Args:
        cloud: PointCloud of kind 'intensity' or 'rgb'

    Returns:
        PointCloud2 with FLOAT32 x, y, z and intensity or rgb fields
    """
    fields = RGB_FIELDS if cloud.kind == 'rgb' else INTENSITY_FIELDS
    structured_points = np.zeros(len(cloud), dtype=point_cloud2.dtype_from_fields(fields))
    structured_points['x'] = cloud.points['x']
    structured_points['y'] = cloud.points['y']
    structured_points['z'] = cloud.points['z']
    if cloud.kind == 'rgb':
        structured_points['rgb'] = rgb_as_float(cloud.points['rgb'])
    else:
        structured_points['intensity'] = cloud.points['intensity']

    return point_cloud2.create_cloud(make_header(cloud.frame_id, cloud.stamp), fields, structured_points)

# -------------------- CLASS ------------------- #

class _RosPort(OutputPort):

    def __init__(self, node: Node, msg_type, topic: str, qos):
        self.node = node
        self.topic = topic
        self.pub = node.create_publisher(msg_type, topic, qos)

    def is_ready(self) -> bool:
        return rclpy.ok(context=self.node.context)


class RosImagePort(_RosPort):
    """Publishes StampedImage payloads as sensor_msgs/Image."""

    def __init__(self, node: Node, topic: str, qos=10):
        super().__init__(node, Image, topic, qos)
        self.bridge = CvBridge()

    def publish(self, payload):
        msg = self.bridge.cv2_to_imgmsg(payload.image, encoding=payload.encoding)
        msg.header = make_header(payload.frame_id, payload.stamp)
        self.pub.publish(msg)


class RosPointCloudPort(_RosPort):
    """Publishes PointCloud payloads as sensor_msgs/PointCloud2."""

    def __init__(self, node: Node, topic: str, qos=1):
        super().__init__(node, PointCloud2, topic, qos)

    def publish(self, payload):
        self.pub.publish(cloud_to_msg(payload))
