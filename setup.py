from setuptools import setup

setup(name='bagsmith',
      version='0.3',
      description="bagsmith: a Python engine for building, validating, and updating BagIt bags",
      author="Ray Plante",
      author_email="raymond.plante@nist.gov",
      url='https://github.com/usnistgov/bagsmith',
      scripts=[ ],
      packages=['bagsmith', 'bagsmith.validation'],
      install_requires=['fs'],
      extras_require={'test': ['bagit']},
      test_suite="tests.suite",
      test_runner="unittest:TextTestRunner"
)
