import rclpy
from rclpy.node import Node
from rclpy.duration import Duration
from rclpy.time import Time
from rclpy.callback_groups import MutuallyExclusiveCallbackGroup
from rclpy.executors import MultiThreadedExecutor
from rclpy.qos import QoSProfile, ReliabilityPolicy, HistoryPolicy, DurabilityPolicy
from sensor_msgs.msg import Image, CameraInfo
from cv_bridge import CvBridge
import message_filters
import tf2_ros

import numpy as np

from .depthmap import DepthmapState
from .publisher import Publisher
from .ros_ports import RosImagePort, RosPointCloudPort
from .utils.pointcloud_processor import PointCloudProcessor, MASK_VALID
from .utils.projection import CameraIntrinsics
from .utils.transforms import SE3

DEFAULT_PUBLISH_RATE = 2.0

# -------------------- NODE -------------------- #

class DepthmapPublisherNode(Node):
    """
    ROS2 Node bridging a depth estimation engine to the depth publisher.

    Engine outputs (depth, convergence, reference image) arrive as
    synchronized image topics and are written into a DepthmapState together
    with the camera pose from tf. A timer publishes the depth map, both
    point clouds and the convergence overlay from that state.
    """

    # ------------- Initialization ------------- #

    def __init__(self):
        super().__init__('remode_publisher')

        # ============= Parameters ============= #

        # Engine input topics
        self.declare_parameter('depth_topic', '/remode/engine/depth')
        self.declare_parameter('convergence_topic', '/remode/engine/convergence')
        self.declare_parameter('reference_topic', '/remode/engine/reference')
        self.declare_parameter('reference_rgb_topic', '/remode/engine/reference_rgb')
        self.declare_parameter('reference_mask_topic', '/remode/engine/reference_mask')
        self.declare_parameter('camera_info_topic', '/camera/camera_info')

        self.depth_topic = self.get_parameter('depth_topic').value
        self.convergence_topic = self.get_parameter('convergence_topic').value
        self.reference_topic = self.get_parameter('reference_topic').value
        self.reference_rgb_topic = self.get_parameter('reference_rgb_topic').value
        self.reference_mask_topic = self.get_parameter('reference_mask_topic').value
        self.camera_info_topic = self.get_parameter('camera_info_topic').value

        # Output topics
        self.declare_parameter('depthmap_out_topic', 'remode/depth')
        self.declare_parameter('convergence_out_topic', 'remode/convergence')
        self.declare_parameter('pointcloud_out_topic', 'remode/pointcloud')
        self.declare_parameter('rgb_pointcloud_out_topic', 'remode/rgb_pointcloud')

        self.depthmap_out_topic = self.get_parameter('depthmap_out_topic').value
        self.convergence_out_topic = self.get_parameter('convergence_out_topic').value
        self.pointcloud_out_topic = self.get_parameter('pointcloud_out_topic').value
        self.rgb_pointcloud_out_topic = self.get_parameter('rgb_pointcloud_out_topic').value

        # Frames and publication
        self.declare_parameter('world_frame', 'world')
        self.declare_parameter('camera_frame', 'camera')
        self.declare_parameter('tf_timeout', 0.1)
        self.declare_parameter('sync_slop', 0.05)
        self.declare_parameter('publish_rate', DEFAULT_PUBLISH_RATE)
        self.declare_parameter('publish_convergence', True)
        self.declare_parameter('mask_valid_value', MASK_VALID)

        self.world_frame = self.get_parameter('world_frame').value
        self.camera_frame = self.get_parameter('camera_frame').value
        self.tf_timeout = float(self.get_parameter('tf_timeout').value)
        self.sync_slop = float(self.get_parameter('sync_slop').value)
        self.publish_rate = float(self.get_parameter('publish_rate').value)
        if self.publish_rate <= 0.0:
            self.get_logger().error(
                f"publish_rate must be positive, got {self.publish_rate}; using {DEFAULT_PUBLISH_RATE} Hz"
            )
            self.publish_rate = DEFAULT_PUBLISH_RATE
        self.publish_convergence = bool(self.get_parameter('publish_convergence').value)
        self.mask_valid_value = int(self.get_parameter('mask_valid_value').value)

        # =========== Initialization =========== #

        self.bridge = CvBridge()
        self.depthmap = DepthmapState()

        self.tf_buffer = tf2_ros.Buffer()
        self.tf_listener = tf2_ros.TransformListener(self.tf_buffer, self)

        self.engine_group = MutuallyExclusiveCallbackGroup()
        self.publish_group = MutuallyExclusiveCallbackGroup()

        qos_sensor = QoSProfile(
            depth=5,
            history=HistoryPolicy.KEEP_LAST,
            reliability=ReliabilityPolicy.BEST_EFFORT,
            durability=DurabilityPolicy.VOLATILE
        )

        # Subscribers
        self.depth_sub = message_filters.Subscriber(self, Image, self.depth_topic, qos_profile=qos_sensor, callback_group=self.engine_group)
        self.conv_sub = message_filters.Subscriber(self, Image, self.convergence_topic, qos_profile=qos_sensor, callback_group=self.engine_group)
        self.ref_sub = message_filters.Subscriber(self, Image, self.reference_topic, qos_profile=qos_sensor, callback_group=self.engine_group)
        self.ts = message_filters.ApproximateTimeSynchronizer(
            [self.depth_sub, self.conv_sub, self.ref_sub],
            queue_size=10,
            slop=self.sync_slop
        )
        self.ts.registerCallback(self.engine_callback)

        self.rgb_sub = self.create_subscription(Image, self.reference_rgb_topic, self.reference_rgb_callback, qos_sensor, callback_group=self.engine_group)
        self.mask_sub = self.create_subscription(Image, self.reference_mask_topic, self.reference_mask_callback, qos_sensor, callback_group=self.engine_group)
        self.camera_info_sub = self.create_subscription(CameraInfo, self.camera_info_topic, self.camera_info_cb, qos_sensor, callback_group=self.engine_group)

        # Publishers
        self.depth_publisher = Publisher(
            self.depthmap,
            depth_port=RosImagePort(self, self.depthmap_out_topic, 10),
            convergence_port=RosImagePort(self, self.convergence_out_topic, 10) if self.publish_convergence else None,
            pointcloud_port=RosPointCloudPort(self, self.pointcloud_out_topic, 1),
            pointcloud_rgb_port=RosPointCloudPort(self, self.rgb_pointcloud_out_topic, 1),
            clock=lambda: self.get_clock().now().nanoseconds,
            logger=self.get_logger(),
            processor=PointCloudProcessor(mask_valid_value=self.mask_valid_value, frame_id=self.world_frame),
        )

        self.publish_timer = self.create_timer(1.0 / self.publish_rate, self.publish_callback, callback_group=self.publish_group)

        self.get_logger().info(
            f"Depthmap publisher initialized. Listening on {self.depth_topic}, "
            f"{self.convergence_topic}, {self.reference_topic}; publishing at {self.publish_rate} Hz"
        )

    # ---------------- Callbacks --------------- #

    def camera_info_cb(self, msg: CameraInfo):
        """
        Process camera intrinsic parameters
        """
        if self.depthmap.get_fx() is None:
            intrinsics = CameraIntrinsics.from_camera_info_k(msg.k)
            self.depthmap.set_intrinsics(intrinsics)
            self.get_logger().info(
                f"Camera intrinsics received: fx={intrinsics.fx}, fy={intrinsics.fy}, "
                f"cx={intrinsics.cx}, cy={intrinsics.cy}"
            )

    def engine_callback(self, depth_msg: Image, conv_msg: Image, ref_msg: Image):
        """
        Write one synchronized engine output into the shared depth state.
        """
        try:
            depth = self.bridge.imgmsg_to_cv2(depth_msg, desired_encoding='32FC1')
            convergence = self.bridge.imgmsg_to_cv2(conv_msg, desired_encoding='passthrough')
            ref_img = self.bridge.imgmsg_to_cv2(ref_msg, desired_encoding='mono8')
        except Exception as e:
            self.get_logger().error(f"CV Bridge Error: {e}")
            return

        T_world_ref = self.lookup_pose(depth_msg.header.stamp)
        if T_world_ref is None:
            return

        self.depthmap.update(
            depth=depth,
            convergence=np.asarray(convergence).astype(np.int32, copy=False),
            reference_image=ref_img,
            t_world_ref=T_world_ref,
        )

    def reference_rgb_callback(self, msg: Image):
        try:
            ref_img_rgb = self.bridge.imgmsg_to_cv2(msg, desired_encoding='bgr8')
        except Exception as e:
            self.get_logger().error(f"CV Bridge Error: {e}")
            return
        self.depthmap.update(reference_image_rgb=ref_img_rgb)

    def reference_mask_callback(self, msg: Image):
        try:
            ref_mask = self.bridge.imgmsg_to_cv2(msg, desired_encoding='mono8')
        except Exception as e:
            self.get_logger().error(f"CV Bridge Error: {e}")
            return
        self.depthmap.update(reference_mask=ref_mask)

    def publish_callback(self):
        if self.depthmap.get_fx() is None:
            # Depth image and overlay do not need intrinsics, only the clouds do
            self.get_logger().warn("Waiting for camera intrinsics, point clouds disabled...", throttle_duration_sec=5.0)

        self.depth_publisher.publish_depthmap_and_pointcloud()
        if self.publish_convergence:
            self.depth_publisher.publish_convergence_map()

    # --------------- Main Methods ------------- #

    def lookup_pose(self, stamp):
        """
        Camera-to-world pose at the given stamp, None when tf cannot provide it.
        """
        if self.camera_frame == self.world_frame:
            return SE3.identity()
        try:
            transform = self.tf_buffer.lookup_transform(
                self.world_frame,
                self.camera_frame,
                Time.from_msg(stamp),
                timeout=Duration(seconds=self.tf_timeout)
            )
        except tf2_ros.TransformException as ex:
            self.get_logger().warning(f"Could not get {self.world_frame} <- {self.camera_frame}: {ex}")
            return None

        q = transform.transform.rotation
        t = transform.transform.translation
        return SE3.from_quaternion([q.w, q.x, q.y, q.z], [t.x, t.y, t.z])

# -------------------- MAIN -------------------- #

def main(args=None):
    rclpy.init(args=args)
    node = DepthmapPublisherNode()

    # Engine callbacks and the publish timer run concurrently
    executor = MultiThreadedExecutor()
    executor.add_node(node)

    try:
        executor.spin()
    except KeyboardInterrupt:
        pass
    finally:
        node.destroy_node()
        rclpy.shutdown()

if __name__ == "__main__":
    main()
