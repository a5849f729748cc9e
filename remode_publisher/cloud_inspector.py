import rclpy
from rclpy.node import Node
from sensor_msgs.msg import PointCloud2
from rclpy.qos import QoSProfile, ReliabilityPolicy, HistoryPolicy


def describe_cloud(msg) -> dict:
    """Layout summary of a PointCloud2 message."""
    expected_size = msg.height * msg.width * msg.point_step
    return {
        'frame_id': msg.header.frame_id,
        'points': msg.height * msg.width,
        'fields': [field.name for field in msg.fields],
        'point_step': msg.point_step,
        'data_length': len(msg.data),
        'expected_size': expected_size,
        'size_ok': len(msg.data) == expected_size,
    }


class CloudInspector(Node):
    def __init__(self):
        super().__init__('cloud_inspector')

        self.declare_parameter('cloud_topic', 'remode/pointcloud')
        self.declare_parameter('once', False)
        self.cloud_topic = self.get_parameter('cloud_topic').value
        self.once = bool(self.get_parameter('once').value)

        # Clouds are published with depth 1, keep only the newest
        qos_profile = QoSProfile(
            reliability=ReliabilityPolicy.BEST_EFFORT,
            history=HistoryPolicy.KEEP_LAST,
            depth=1
        )

        self.subscription = self.create_subscription(
            PointCloud2,
            self.cloud_topic,
            self.listener_callback,
            qos_profile=qos_profile)

    def listener_callback(self, msg):
        info = describe_cloud(msg)
        self.get_logger().info(
            f"frame={info['frame_id']} points={info['points']} fields={','.join(info['fields'])} "
            f"point_step={info['point_step']} data={info['data_length']} bytes"
        )
        if not info['size_ok']:
            diff = info['data_length'] - info['expected_size']
            self.get_logger().warning(
                f"MISMATCH: Data is {abs(diff)} bytes {'larger' if diff > 0 else 'smaller'} than expected."
            )

        if self.once:
            raise SystemExit

def main(args=None):
    rclpy.init(args=args)
    inspector = CloudInspector()
    try:
        rclpy.spin(inspector)
    except (SystemExit, KeyboardInterrupt):
        pass
    inspector.destroy_node()
    rclpy.shutdown()

if __name__ == '__main__':
    main()
