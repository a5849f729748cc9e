from setuptools import find_packages, setup
import os
from glob import glob

package_name = 'remode_publisher'

setup(
    name=package_name,
    version='0.1.0',
    packages=find_packages(exclude=['test']),
    data_files=[
        ('share/ament_index/resource_index/packages',
            ['resource/' + package_name]),
        ('share/' + package_name, ['package.xml']),
        (os.path.join('share', package_name, 'launch'), glob('launch/*.launch.py')),
    ],
    install_requires=['setuptools', 'numpy', 'opencv-python'],
    zip_safe=True,
    maintainer='sensor',
    maintainer_email='sensor@todo.todo',
    description='Publishes REMODE depth maps, convergence overlays and converged point clouds',
    license='GPL-3.0-or-later',
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'depthmap_publisher_node = remode_publisher.depthmap_publisher_node:main',
            'cloud_inspector = remode_publisher.cloud_inspector:main',
        ],
    },
)
