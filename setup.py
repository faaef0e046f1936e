from setuptools import find_packages, setup

setup(
    name='ossmultipart',
    packages=find_packages(exclude=['tests', 'tests.*']),
    version=open('VERSION').read().strip(),
    description='Resumable multipart uploads and downloads for object storage services',
    author='ossmultipart maintainers',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    python_requires='>=3.10',
    install_requires=[
        'figcan',
        'marshmallow>=3.18',
        'pyyaml',
        'python-dotenv',
        'typing-extensions',
        'boto3',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    include_package_data=True
)
