#!/usr/bin/env python3
"""
Launch file for the REMODE depth map publisher.

This launch file starts:
1. depthmap_publisher_node - depth map, convergence overlay and point cloud publication
2. cloud_inspector - optional PointCloud2 layout check on the published cloud
"""

from launch import LaunchDescription
from launch_ros.actions import Node
from launch.actions import DeclareLaunchArgument
from launch.conditions import IfCondition
from launch.substitutions import LaunchConfiguration


def generate_launch_description():
    # Declare launch arguments
    depth_topic_arg = DeclareLaunchArgument(
        'depth_topic',
        default_value='/remode/engine/depth',
        description='Engine depth map topic (32FC1)'
    )

    convergence_topic_arg = DeclareLaunchArgument(
        'convergence_topic',
        default_value='/remode/engine/convergence',
        description='Engine convergence map topic (32SC1)'
    )

    reference_topic_arg = DeclareLaunchArgument(
        'reference_topic',
        default_value='/remode/engine/reference',
        description='Reference grayscale image topic'
    )

    camera_info_topic_arg = DeclareLaunchArgument(
        'camera_info_topic',
        default_value='/camera/camera_info',
        description='Camera info topic'
    )

    world_frame_arg = DeclareLaunchArgument(
        'world_frame',
        default_value='world',
        description='Fixed frame of the published point clouds'
    )

    camera_frame_arg = DeclareLaunchArgument(
        'camera_frame',
        default_value='camera',
        description='Reference camera frame looked up in tf'
    )

    publish_rate_arg = DeclareLaunchArgument(
        'publish_rate',
        default_value='2.0',
        description='Publication rate in Hz'
    )

    inspect_arg = DeclareLaunchArgument(
        'inspect',
        default_value='false',
        description='Start the cloud inspector'
    )

    # Depth map publisher
    publisher_node = Node(
        package='remode_publisher',
        executable='depthmap_publisher_node',
        name='remode_publisher',
        output='screen',
        parameters=[{
            'depth_topic': LaunchConfiguration('depth_topic'),
            'convergence_topic': LaunchConfiguration('convergence_topic'),
            'reference_topic': LaunchConfiguration('reference_topic'),
            'reference_rgb_topic': '/remode/engine/reference_rgb',
            'reference_mask_topic': '/remode/engine/reference_mask',
            'camera_info_topic': LaunchConfiguration('camera_info_topic'),
            'world_frame': LaunchConfiguration('world_frame'),
            'camera_frame': LaunchConfiguration('camera_frame'),
            'publish_rate': LaunchConfiguration('publish_rate'),
            'publish_convergence': True,
            'mask_valid_value': 1,
            'sync_slop': 0.05,
            'tf_timeout': 0.1,
        }]
    )

    # Point cloud inspector
    inspector_node = Node(
        package='remode_publisher',
        executable='cloud_inspector',
        name='cloud_inspector',
        output='screen',
        condition=IfCondition(LaunchConfiguration('inspect')),
        parameters=[{
            'cloud_topic': 'remode/pointcloud',
        }]
    )

    return LaunchDescription([
        depth_topic_arg,
        convergence_topic_arg,
        reference_topic_arg,
        camera_info_topic_arg,
        world_frame_arg,
        camera_frame_arg,
        publish_rate_arg,
        inspect_arg,
        publisher_node,
        inspector_node,
    ])
