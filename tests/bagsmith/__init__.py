from unittest import TestLoader, TestSuite

def additional_tests():
    from . import (test_constants, test_digest, test_pathcodec, test_walker, 
                   test_manifest, test_tags, test_statcache, test_fixity, 
                   test_staging, test_phases, test_access, test_builder, 
                   test_updater, test_api)

    suites = [TestLoader().loadTestsFromModule(m[1])
                     for m in globals().items() if m[0].startswith("test_")]
    return TestSuite(suites)
